"""Wizard state machine driving the proposal, NDA and OEM readiness flows."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .config import PortalflowConfig
from .contracts import (
    ActionKind,
    ExternalActionRecord,
    FlowState,
    FlowVariant,
    StepDescriptor,
    SubmissionStatus,
    ValidationGap,
)
from .gateway.base import BaseGateway
from .persistence.models import ProposalRecord
from .steps import clamp_step_index, get_steps, is_step_complete

logger = logging.getLogger(__name__)

# Submission status reached when an action of the given kind succeeds.
STATUS_ON_SUCCESS: Dict[ActionKind, SubmissionStatus] = {
    ActionKind.SUBMIT: SubmissionStatus.PENDING_SIGNATURE,
    ActionKind.SEND_FOR_SIGNATURE: SubmissionStatus.PENDING_SIGNATURE,
    ActionKind.CREATE_PROJECT: SubmissionStatus.ACTIVE,
    ActionKind.COUNTERSIGN: SubmissionStatus.COMPLETED,
}

# Generated artifacts stored on the flow state when an action succeeds.
DERIVED_KEYS: Dict[ActionKind, str] = {
    ActionKind.DEEP_RESEARCH: "deep_research_result",
    ActionKind.RECOMMEND_AFFILIATES: "affiliate_recommendations",
    ActionKind.GENERATE_SLIDES: "slide_deck",
}


class WizardPhase(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    PENDING_EXTERNAL_ACTION = "pending_external_action"
    SUBMITTED = "submitted"
    FAILED = "failed"


class WizardStateMachine:
    """Linear multi-step flow parameterized by :class:`FlowVariant`.

    Navigation is permissive: users may skip ahead past incomplete steps.
    Pass ``strict=True`` to keep ``go_next`` on an incomplete step instead.
    Only :meth:`run_external_action` suspends or fails; every other
    operation is a synchronous, infallible transition.
    """

    def __init__(
        self,
        gateway: BaseGateway,
        variant: FlowVariant | str = FlowVariant.STANDARD,
        strict: bool = False,
        proposal_id: Optional[str] = None,
    ) -> None:
        self._gateway = gateway
        self.strict = strict
        self._generation = 0
        self._pending: Dict[str, ExternalActionRecord] = {}
        self._records: List[ExternalActionRecord] = []
        self.proposal_id: Optional[str] = None
        self.state = FlowState()
        self.start(variant)
        # Only the first session continues an existing proposal.
        self.proposal_id = proposal_id

    @classmethod
    def from_config(
        cls,
        gateway: BaseGateway,
        config: PortalflowConfig,
        variant: FlowVariant | str = FlowVariant.STANDARD,
    ) -> "WizardStateMachine":
        return cls(gateway, variant=variant, strict=config.wizard.strict)

    # ------------------------------------------------------------------
    # Inspection
    @property
    def steps(self) -> Tuple[StepDescriptor, ...]:
        return get_steps(self.state.variant)

    @property
    def current_step(self) -> StepDescriptor:
        return self.steps[self.state.current_step_index - 1]

    @property
    def fields(self) -> Dict[str, Any]:
        return self.state.fields

    @property
    def history(self) -> List[ExternalActionRecord]:
        """Resolved actions of the current session, oldest first."""
        return [r for r in self._records if r.session_id == self.state.session_id]

    @property
    def pending_actions(self) -> List[ExternalActionRecord]:
        return list(self._pending.values())

    @property
    def phase(self) -> WizardPhase:
        if self._pending:
            return WizardPhase.PENDING_EXTERNAL_ACTION
        if self.state.submission_status is not SubmissionStatus.DRAFT:
            return WizardPhase.SUBMITTED
        if self.state.last_error:
            return WizardPhase.FAILED
        if self.state.current_step_index == 1 and not self.state.fields:
            return WizardPhase.DRAFT
        return WizardPhase.IN_PROGRESS

    def is_step_complete(self, step_id: int) -> bool:
        step = self.steps[clamp_step_index(step_id, self.steps) - 1]
        return is_step_complete(step, self.state)

    def validation_gaps(self) -> List[ValidationGap]:
        """Incomplete steps before the current one. Advisory only."""
        return [
            ValidationGap(step_id=step.id, title=step.title)
            for step in self.steps[: self.state.current_step_index - 1]
            if not is_step_complete(step, self.state)
        ]

    # ------------------------------------------------------------------
    # Transitions
    def start(self, variant: FlowVariant | str = FlowVariant.STANDARD) -> FlowState:
        """Reset to an empty draft on step 1, abandoning any in-flight actions.

        The new session starts without a proposal id, so its first save
        creates a new proposal instead of overwriting the previous one.
        """
        self._generation += 1
        self._pending.clear()
        self.proposal_id = None
        self.state = FlowState(variant=FlowVariant(variant), generation=self._generation)
        logger.debug(
            f"Started {self.state.variant.value} flow session={self.state.session_id} generation={self._generation}"
        )
        return self.state

    def set_variant(self, variant: FlowVariant | str) -> None:
        """Switch step list, keeping entered fields and clamping the index."""
        self.state.variant = FlowVariant(variant)
        self.state.current_step_index = clamp_step_index(
            self.state.current_step_index, self.steps
        )

    def go_next(self) -> int:
        self.state.last_error = None
        if self.strict and not is_step_complete(self.current_step, self.state):
            logger.info(
                f"Strict mode: step {self.current_step.id} ({self.current_step.title}) is incomplete"
            )
            return self.state.current_step_index
        self.state.current_step_index = min(self.state.current_step_index + 1, len(self.steps))
        return self.state.current_step_index

    def go_back(self) -> int:
        self.state.last_error = None
        self.state.current_step_index = max(self.state.current_step_index - 1, 1)
        return self.state.current_step_index

    def jump_to(self, step_id: int) -> int:
        self.state.last_error = None
        self.state.current_step_index = clamp_step_index(step_id, self.steps)
        return self.state.current_step_index

    def set_field(self, name: str, value: Any) -> None:
        self.state.fields[name] = value

    def update_fields(self, values: Dict[str, Any]) -> None:
        self.state.fields.update(values)

    # ------------------------------------------------------------------
    # External actions
    async def run_external_action(
        self, kind: ActionKind | str, payload: Optional[Dict[str, Any]] = None
    ) -> ExternalActionRecord:
        """Invoke ``kind`` through the gateway and apply its outcome.

        Failures leave the step index and fields untouched; the returned
        record carries the error and ``raise_for_status`` raises it. A result
        arriving after :meth:`start` was called again is marked stale and
        discarded.
        """
        kind = ActionKind(kind)
        session_id = self.state.session_id
        generation = self._generation
        record = ExternalActionRecord(
            kind=kind,
            session_id=session_id,
            step_index=self.state.current_step_index,
            generation=generation,
        )
        self._pending[record.action_id] = record
        logger.info(f"Running {kind.value} for session={session_id} step={record.step_index}")

        outcome = await self._gateway.invoke(kind, self._build_payload(payload))

        stale = generation != self._generation or session_id != self.state.session_id
        resolved = record.resolve(outcome, stale=stale)
        self._pending.pop(record.action_id, None)
        self._records.append(resolved)

        if stale:
            logger.warning(
                f"Discarding {kind.value} result for abandoned session={session_id} generation={generation}"
            )
            return resolved

        if resolved.succeeded:
            self._apply_success(kind, resolved.value)
        else:
            self.state.last_error = resolved.error_detail
            logger.error(f"{kind.value} failed for session={session_id}: {resolved.error_detail}")
        return resolved

    def _build_payload(self, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "session_id": self.state.session_id,
            "proposal_id": self.proposal_id or f"proposal-{self.state.session_id}",
            "variant": self.state.variant.value,
            "step_index": self.state.current_step_index,
            "fields": dict(self.state.fields),
            "derived": dict(self.state.derived),
            **(payload or {}),
        }

    def _apply_success(self, kind: ActionKind, value: Any) -> None:
        self.state.last_error = None
        if kind in DERIVED_KEYS:
            self.state.derived[DERIVED_KEYS[kind]] = value
        if isinstance(value, dict) and value.get("proposal_id"):
            self.proposal_id = value["proposal_id"]
        new_status = STATUS_ON_SUCCESS.get(kind)
        if new_status is not None:
            logger.info(
                f"Submission status {self.state.submission_status.value} -> {new_status.value} "
                f"for session={self.state.session_id}"
            )
            self.state.submission_status = new_status

    # ------------------------------------------------------------------
    def to_record(self) -> ProposalRecord:
        """Snapshot this session as a persistable proposal record."""
        now = datetime.now(timezone.utc)
        fields = dict(self.state.fields)
        return ProposalRecord(
            id=self.proposal_id or f"proposal-{self.state.session_id or uuid.uuid4()}",
            name=str(fields.get("name") or fields.get("supplier_name") or ""),
            variant=self.state.variant,
            document_type=fields.get("document_type"),
            status=self.state.submission_status,
            fields=fields,
            derived=dict(self.state.derived),
            created_at=now,
            updated_at=now,
        )
