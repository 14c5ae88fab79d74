"""Chat-style sub-flows."""

from __future__ import annotations

from .base import ConversationalFlow, ConversationSession, Intent, IntentMatcher, Transition
from .playbook import PlaybookFlow
from .prospect_search import ProspectSearchFlow, extract_criteria

__all__ = [
    "ConversationSession",
    "ConversationalFlow",
    "Intent",
    "IntentMatcher",
    "PlaybookFlow",
    "ProspectSearchFlow",
    "Transition",
    "extract_criteria",
]
