"""Core data contracts shared by the wizard, conversations and gateway."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ExternalActionFailure


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlowVariant(str, Enum):
    """Selects which ordered step list a wizard session uses."""

    STANDARD = "standard"
    NDA = "nda"
    OEM_SUPPLIER_READINESS = "oem_supplier_readiness"


# Portal document types and the wizard variant each one is edited with.
DOCUMENT_TYPE_VARIANTS: Dict[str, FlowVariant] = {
    "grant": FlowVariant.STANDARD,
    "rfp_response": FlowVariant.STANDARD,
    "rfi_response": FlowVariant.STANDARD,
    "contract": FlowVariant.STANDARD,
    "agreement": FlowVariant.STANDARD,
    "mou": FlowVariant.STANDARD,
    "nda": FlowVariant.NDA,
    "oem_supplier_readiness": FlowVariant.OEM_SUPPLIER_READINESS,
}


def variant_for_document_type(document_type: Optional[str]) -> FlowVariant:
    """Return the wizard variant for a portal document type.

    Unknown or missing types fall back to the standard proposal flow.
    """
    return DOCUMENT_TYPE_VARIANTS.get((document_type or "").strip().lower(), FlowVariant.STANDARD)


class SubmissionStatus(str, Enum):
    DRAFT = "draft"
    PENDING_SIGNATURE = "pending_signature"
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


class StepDescriptor(BaseModel):
    """One step of a wizard variant."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str = ""
    is_complete: Callable[[Any], bool] = Field(exclude=True, repr=False)


class FlowState(BaseModel):
    """Mutable aggregate owned by exactly one wizard session."""

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    generation: int = 0
    variant: FlowVariant = FlowVariant.STANDARD
    current_step_index: int = 1
    fields: Dict[str, Any] = Field(default_factory=dict)
    derived: Dict[str, Any] = Field(default_factory=dict)
    submission_status: SubmissionStatus = SubmissionStatus.DRAFT
    last_error: Optional[str] = None


class ValidationGap(BaseModel):
    """Advisory marker for a step whose required data is missing."""

    step_id: int
    title: str


class ActionKind(str, Enum):
    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    CREATE_PROJECT = "create_project"
    SEND_FOR_SIGNATURE = "send_for_signature"
    COUNTERSIGN = "countersign"
    DEEP_RESEARCH = "deep_research"
    RECOMMEND_AFFILIATES = "recommend_affiliates"
    GENERATE_SLIDES = "generate_slides"
    ENHANCE_TEXT = "enhance_text"
    REVEAL_CONTACT = "reveal_contact"
    SEARCH_PROSPECTS = "search_prospects"
    SAVE_PROSPECT_LIST = "save_prospect_list"
    NOTIFY = "notify"


class ActionOutcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class ActionResult(BaseModel):
    """Typed result returned across the gateway boundary."""

    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "ActionResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ActionResult":
        return cls(ok=False, error=error)


class ExternalActionRecord(BaseModel):
    """One attempted call to an external collaborator.

    Records are immutable. ``resolve`` returns a new, resolved record and a
    resolved record can not be resolved again; a retry is a new record.
    """

    model_config = ConfigDict(frozen=True)

    action_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: ActionKind
    requested_at: datetime = Field(default_factory=_utcnow)
    result: ActionOutcome = ActionOutcome.PENDING
    error_detail: Optional[str] = None
    value: Any = None
    session_id: Optional[str] = None
    step_index: Optional[int] = None
    generation: Optional[int] = None
    resolved_at: Optional[datetime] = None
    stale: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.result is not ActionOutcome.PENDING

    @property
    def succeeded(self) -> bool:
        return self.result is ActionOutcome.SUCCESS

    def resolve(self, outcome: ActionResult, stale: bool = False) -> "ExternalActionRecord":
        """Return a resolved copy of this record."""
        if self.is_resolved:
            raise RuntimeError(f"Action {self.action_id} is already resolved")
        return self.model_copy(
            update={
                "result": ActionOutcome.SUCCESS if outcome.ok else ActionOutcome.FAILURE,
                "value": outcome.value if outcome.ok else None,
                "error_detail": None if outcome.ok else (outcome.error or "Unknown error"),
                "resolved_at": _utcnow(),
                "stale": stale,
            }
        )

    def raise_for_status(self) -> None:
        """Raise :class:`ExternalActionFailure` if the action failed."""
        if self.result is ActionOutcome.FAILURE:
            raise ExternalActionFailure(
                self.kind.value, self.error_detail or "Unknown error", self.action_id
            )


class Prospect(BaseModel):
    """A person returned by prospect search or stored on a contact list."""

    id: str
    name: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class OfferedAction(BaseModel):
    """Button offered alongside an assistant message."""

    label: str
    value: str


class Message(BaseModel):
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    offered_actions: List[OfferedAction] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)


class ConversationState(BaseModel):
    """State of one chat-style sub-flow."""

    messages: List[Message] = Field(default_factory=list)
    phase: str
    pending_intent: Optional[str] = None
    generation: int = 0
