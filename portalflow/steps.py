"""Step definition tables and the flow variant selector.

Each :class:`~portalflow.contracts.FlowVariant` owns one ordered tuple of
:class:`~portalflow.contracts.StepDescriptor`. Completion predicates read the
flow state leniently: missing or malformed data counts as incomplete and
never raises.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence, Tuple

from .contracts import FlowState, FlowVariant, StepDescriptor, SubmissionStatus

logger = logging.getLogger(__name__)


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def _filled(*names: str):
    def predicate(state: FlowState) -> bool:
        fields = getattr(state, "fields", None) or {}
        return all(_has_value(fields.get(name)) for name in names)

    return predicate


def _derived(*names: str):
    def predicate(state: FlowState) -> bool:
        derived = getattr(state, "derived", None) or {}
        return all(_has_value(derived.get(name)) for name in names)

    return predicate


def _submitted(state: FlowState) -> bool:
    return getattr(state, "submission_status", SubmissionStatus.DRAFT) != SubmissionStatus.DRAFT


STANDARD_STEPS: Tuple[StepDescriptor, ...] = (
    StepDescriptor(id=1, title="Basic Info", description="Document upload & basic details", is_complete=_filled("name", "document_type")),
    StepDescriptor(id=2, title="Entities", description="Collaborating organizations", is_complete=_filled("collaborating_entities")),
    StepDescriptor(id=3, title="Data Collection", description="Data collection methods", is_complete=_filled("data_collection_methods")),
    StepDescriptor(id=4, title="Milestones", description="Project timeline", is_complete=_filled("project_milestones")),
    StepDescriptor(id=5, title="Review", description="Review & analysis", is_complete=_filled("analysis_recommendations")),
    StepDescriptor(id=6, title="Forms", description="Form generator", is_complete=_filled("form_templates")),
    StepDescriptor(id=7, title="Dashboard", description="AI dashboard config", is_complete=_filled("dashboard_metrics")),
    StepDescriptor(id=8, title="Export", description="Export & signature", is_complete=_submitted),
)

NDA_STEPS: Tuple[StepDescriptor, ...] = (
    StepDescriptor(id=1, title="NDA Details", description="Agreement information", is_complete=_filled("name", "effective_date")),
    StepDescriptor(id=2, title="Parties", description="Signing parties", is_complete=_filled("signer_name", "signer_email")),
    StepDescriptor(id=3, title="Sign & Send", description="Send for signature", is_complete=_submitted),
)

OEM_STEPS: Tuple[StepDescriptor, ...] = (
    StepDescriptor(id=1, title="Basic Info", description="Supplier & OEM selection", is_complete=_filled("supplier_name", "target_oem")),
    StepDescriptor(id=2, title="Deep Research", description="Company research & analysis", is_complete=_derived("deep_research_result")),
    StepDescriptor(id=3, title="Entities", description="Collaborating organizations", is_complete=_filled("collaborating_entities")),
    StepDescriptor(id=4, title="Milestones", description="Project timeline", is_complete=_filled("project_milestones")),
    StepDescriptor(id=5, title="Review", description="Review & analysis", is_complete=_derived("deep_research_result")),
    StepDescriptor(id=6, title="Affiliates", description="Affiliate recommendations", is_complete=_derived("affiliate_recommendations")),
    StepDescriptor(id=7, title="Presentation", description="Slide deck generator", is_complete=_derived("slide_deck")),
    StepDescriptor(id=8, title="Export", description="Export & project creation", is_complete=_submitted),
)

STEP_TABLE: Dict[FlowVariant, Tuple[StepDescriptor, ...]] = {
    FlowVariant.STANDARD: STANDARD_STEPS,
    FlowVariant.NDA: NDA_STEPS,
    FlowVariant.OEM_SUPPLIER_READINESS: OEM_STEPS,
}


def get_steps(variant: FlowVariant | str) -> Tuple[StepDescriptor, ...]:
    """Return the ordered steps for ``variant``."""
    return STEP_TABLE[FlowVariant(variant)]


def is_step_complete(step: StepDescriptor, state: FlowState) -> bool:
    """Evaluate ``step``'s completion predicate against ``state``."""
    try:
        return bool(step.is_complete(state))
    except Exception as e:
        logger.debug(f"Completion check for step {step.id} ({step.title}) treated as incomplete: {e}")
        return False


def clamp_step_index(index: int, steps: Sequence[StepDescriptor]) -> int:
    """Clamp ``index`` into ``[1, len(steps)]``."""
    return max(1, min(int(index), len(steps)))
