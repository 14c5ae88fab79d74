"""Portalflow: wizard and conversational flow engine for partner portals."""

from .contracts import ActionKind, FlowState, FlowVariant, SubmissionStatus
from .conversation import ConversationSession, PlaybookFlow, ProspectSearchFlow
from .gateway import ActionGateway, build_gateway
from .persistence import get_repository
from .steps import get_steps
from .wizard import WizardStateMachine

__version__ = "0.1.0"
__all__ = [
    "ActionGateway",
    "ActionKind",
    "ConversationSession",
    "FlowState",
    "FlowVariant",
    "PlaybookFlow",
    "ProspectSearchFlow",
    "SubmissionStatus",
    "WizardStateMachine",
    "build_gateway",
    "get_repository",
    "get_steps",
]
