"""Repository abstraction for the portal document store."""

from __future__ import annotations

from typing import Protocol, Sequence

from ..contracts import Prospect
from .models import ContactList, ProposalRecord


class PortalRepository(Protocol):
    """Protocol for proposal and contact list persistence backends."""

    async def save_proposal(self, record: ProposalRecord) -> ProposalRecord:
        """Insert or replace a proposal, keeping its original ``created_at``."""

    async def get_proposal(self, proposal_id: str) -> ProposalRecord | None:
        """Retrieve a proposal by id."""

    async def list_proposals(self) -> list[ProposalRecord]:
        """Return all persisted proposals."""

    async def create_list(
        self, name: str, items: Sequence[Prospect] | None = None
    ) -> ContactList:
        """Create a named contact list. Existing lists are returned unchanged."""

    async def get_list(self, name: str) -> ContactList | None:
        """Retrieve a contact list by name."""

    async def list_lists(self) -> list[ContactList]:
        """Return all contact lists."""

    async def merge_into_list(self, name: str, items: Sequence[Prospect]) -> int:
        """Append prospects not already on the list and return how many were added."""

    async def find_contact(self, contact_id: str) -> Prospect | None:
        """Return a saved copy of a prospect from any list."""
