"""Clients for the services behind portal external actions."""

from __future__ import annotations

from .apollo import ApolloClient, ApolloError, ProspectSearch, RevealCache, RevealField, SearchCriteria
from .mattermost import MattermostNotifier, NotificationResult, Notifier, WebhookEvent
from .signature import NdaEnvelope, NdaStatus, SignatureService, SigningInvite
from .textgen import GenerationTask, PydanticAITextGenerator, StubTextGenerator, TextGenerator, get_text_generator

__all__ = [
    "ApolloClient",
    "ApolloError",
    "GenerationTask",
    "MattermostNotifier",
    "NdaEnvelope",
    "NdaStatus",
    "NotificationResult",
    "Notifier",
    "ProspectSearch",
    "PydanticAITextGenerator",
    "RevealCache",
    "RevealField",
    "SearchCriteria",
    "SignatureService",
    "SigningInvite",
    "StubTextGenerator",
    "TextGenerator",
    "WebhookEvent",
    "get_text_generator",
]
