from __future__ import annotations

import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .constants import (
    APOLLO_API_BASE,
    DEFAULT_LLM_MODEL,
    DEFAULT_SEARCH_PAGE_SIZE,
    SIGNING_LINK_TTL_DAYS,
)
from .errors import ConfigError


class ApolloConfig(BaseModel):
    """Settings for the Apollo prospect-search API."""

    api_key: Optional[str] = None
    base_url: str = APOLLO_API_BASE
    per_page: int = DEFAULT_SEARCH_PAGE_SIZE


class MattermostConfig(BaseModel):
    """Incoming-webhook settings for notifications."""

    webhook_url: Optional[str] = None
    username: str = "Portal Bot"
    enabled_events: Optional[List[str]] = None


class LLMConfig(BaseModel):
    """Text-generation model selection."""

    model: str = DEFAULT_LLM_MODEL


class CountersignerConfig(BaseModel):
    name: str = "Chief Executive Officer"
    title: str = "Chief Executive Officer"
    company: str = ""
    email: Optional[str] = None


class SigningConfig(BaseModel):
    """E-signature link settings."""

    secret: Optional[str] = None
    base_url: str = "http://localhost:3000"
    link_ttl_days: int = SIGNING_LINK_TTL_DAYS
    countersigner: CountersignerConfig = CountersignerConfig()


class WizardConfig(BaseModel):
    strict: bool = False


class PortalflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    apollo: ApolloConfig = Field(default_factory=ApolloConfig)
    mattermost: MattermostConfig = Field(default_factory=MattermostConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    wizard: WizardConfig = Field(default_factory=WizardConfig)


def load_config(path: Optional[str] = None) -> PortalflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to PORTALFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("PORTALFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            config = PortalflowConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
    else:
        config = PortalflowConfig()

    env_db_url = os.getenv("PORTALFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    if api_key := os.getenv("APOLLO_API_KEY"):
        config.apollo.api_key = api_key
    if webhook := os.getenv("MATTERMOST_WEBHOOK_URL"):
        config.mattermost.webhook_url = webhook
    if secret := os.getenv("PORTALFLOW_SIGNING_SECRET"):
        config.signing.secret = secret
    if model := os.getenv("PORTALFLOW_LLM_MODEL"):
        config.llm.model = model
    return config
