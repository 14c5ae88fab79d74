"""Data models for persisted proposals and contact lists."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import FlowVariant, Prospect, SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProposalRecord(BaseModel):
    """Persisted proposal or agreement edited through the wizard."""

    id: str
    name: str = ""
    variant: FlowVariant = FlowVariant.STANDARD
    document_type: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.DRAFT
    fields: dict[str, Any] = Field(default_factory=dict)
    derived: dict[str, Any] = Field(default_factory=dict)
    signature_status: Optional[str] = None
    linked_project_id: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ContactList(BaseModel):
    """Named list of saved prospects."""

    name: str
    items: list[Prospect] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def contact_ids(self) -> set[str]:
        return {item.id for item in self.items}
