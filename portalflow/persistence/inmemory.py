"""In-memory implementation of the portal repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Sequence

from ..contracts import Prospect
from .models import ContactList, ProposalRecord
from .repository import PortalRepository


class InMemoryPortalRepository(PortalRepository):
    """Store proposals and contact lists in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._proposals: Dict[str, ProposalRecord] = {}
        self._lists: Dict[str, ContactList] = {}

    # ------------------------------------------------------------------
    async def save_proposal(self, record: ProposalRecord) -> ProposalRecord:
        existing = self._proposals.get(record.id)
        update = {"updated_at": datetime.now(timezone.utc)}
        if existing:
            update["created_at"] = existing.created_at
        stored = record.model_copy(update=update, deep=True)
        self._proposals[record.id] = stored
        return stored

    async def get_proposal(self, proposal_id: str) -> ProposalRecord | None:
        return self._proposals.get(proposal_id)

    async def list_proposals(self) -> list[ProposalRecord]:
        return list(self._proposals.values())

    # ------------------------------------------------------------------
    async def create_list(
        self, name: str, items: Sequence[Prospect] | None = None
    ) -> ContactList:
        if name not in self._lists:
            self._lists[name] = ContactList(name=name)
            if items:
                await self.merge_into_list(name, items)
        return self._lists[name]

    async def get_list(self, name: str) -> ContactList | None:
        return self._lists.get(name)

    async def list_lists(self) -> list[ContactList]:
        return list(self._lists.values())

    async def merge_into_list(self, name: str, items: Sequence[Prospect]) -> int:
        contact_list = self._lists.get(name)
        if contact_list is None:
            contact_list = self._lists[name] = ContactList(name=name)
        known = contact_list.contact_ids()
        added = 0
        for item in items:
            if item.id in known:
                continue
            contact_list.items.append(item.model_copy())
            known.add(item.id)
            added += 1
        if added:
            contact_list.updated_at = datetime.now(timezone.utc)
        return added

    async def find_contact(self, contact_id: str) -> Prospect | None:
        for contact_list in self._lists.values():
            for item in contact_list.items:
                if item.id == contact_id:
                    return item
        return None
