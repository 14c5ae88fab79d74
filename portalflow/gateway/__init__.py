"""Gateway factory and initialization."""

from __future__ import annotations

from typing import Optional

from ..config import PortalflowConfig, load_config
from ..integrations.apollo import ApolloClient, ProspectSearch
from ..integrations.mattermost import MattermostNotifier, Notifier
from ..integrations.signature import SignatureService
from ..integrations.textgen import TextGenerator, get_text_generator
from ..persistence import get_repository
from ..persistence.repository import PortalRepository
from .base import ActionGateway, ActionHandler, BaseGateway
from .handlers import PortalActionHandlers


def build_gateway(
    config: Optional[PortalflowConfig] = None,
    repository: Optional[PortalRepository] = None,
    signatures: Optional[SignatureService] = None,
    notifier: Optional[Notifier] = None,
    text_generator: Optional[TextGenerator] = None,
    prospects: Optional[ProspectSearch] = None,
) -> ActionGateway:
    """Factory function to get a gateway wired to the configured collaborators.

    Explicit collaborators take precedence. Missing ones are built from
    ``config``; Apollo, Mattermost and signing (without a secret) are left
    out when unconfigured, so their actions fail with a "not configured"
    message.
    """

    config = config or load_config()
    repository = repository or get_repository(config=config)
    if signatures is None and config.signing.secret:
        signatures = SignatureService.from_config(config.signing)
    if notifier is None and config.mattermost.webhook_url:
        notifier = MattermostNotifier(
            config.mattermost.webhook_url,
            username=config.mattermost.username,
            enabled_events=config.mattermost.enabled_events,
        )
    text_generator = text_generator or get_text_generator(config.llm.model)
    if prospects is None and config.apollo.api_key:
        prospects = ApolloClient(
            config.apollo.api_key,
            base_url=config.apollo.base_url,
            per_page=config.apollo.per_page,
        )

    handlers = PortalActionHandlers(
        repository=repository,
        signatures=signatures,
        notifier=notifier,
        text_generator=text_generator,
        prospects=prospects,
    )
    return handlers.register_all(ActionGateway())


__all__ = [
    "ActionGateway",
    "ActionHandler",
    "BaseGateway",
    "PortalActionHandlers",
    "build_gateway",
]
