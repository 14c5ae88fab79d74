"""SQLite implementation of the portal repository."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from ..contracts import Prospect
from .models import ContactList, ProposalRecord
from .repository import PortalRepository


class SQLitePortalRepository(PortalRepository):
    """Persist proposals and contact lists using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS proposals (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS contact_lists (
                name TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS contact_list_items (
                list_name TEXT NOT NULL,
                contact_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (list_name, contact_id)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _save_proposal(self, record: ProposalRecord) -> ProposalRecord:
        row = self._fetchone("SELECT data FROM proposals WHERE id = ?", record.id)
        update: dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
        if row:
            update["created_at"] = ProposalRecord.model_validate_json(row["data"]).created_at
        stored = record.model_copy(update=update)
        self._execute(
            """
            INSERT OR REPLACE INTO proposals (id, name, status, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            stored.id,
            stored.name,
            stored.status.value,
            stored.model_dump_json(),
            stored.created_at.isoformat(),
            stored.updated_at.isoformat(),
        )
        return stored

    def _ensure_list(self, name: str) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        cur = self._conn.cursor()
        cur.execute(
            "INSERT OR IGNORE INTO contact_lists (name, created_at, updated_at) VALUES (?, ?, ?)",
            (name, now, now),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def _merge(self, name: str, items: Sequence[Prospect]) -> int:
        self._ensure_list(name)
        cur = self._conn.cursor()
        cur.execute(
            "SELECT COALESCE(MAX(position), -1) AS last FROM contact_list_items WHERE list_name = ?",
            (name,),
        )
        position = cur.fetchone()["last"]
        added = 0
        for item in items:
            cur.execute(
                """
                INSERT OR IGNORE INTO contact_list_items (list_name, contact_id, position, data)
                VALUES (?, ?, ?, ?)
                """,
                (name, item.id, position + 1, item.model_dump_json()),
            )
            if cur.rowcount > 0:
                position += 1
                added += 1
        if added:
            cur.execute(
                "UPDATE contact_lists SET updated_at = ? WHERE name = ?",
                (datetime.now(timezone.utc).isoformat(), name),
            )
        self._conn.commit()
        return added

    def _load_list(self, row: sqlite3.Row) -> ContactList:
        items = self._fetchall(
            "SELECT data FROM contact_list_items WHERE list_name = ? ORDER BY position",
            row["name"],
        )
        return ContactList(
            name=row["name"],
            items=[Prospect.model_validate_json(r["data"]) for r in items],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Repository API
    async def save_proposal(self, record: ProposalRecord) -> ProposalRecord:
        return await asyncio.to_thread(self._save_proposal, record)

    async def get_proposal(self, proposal_id: str) -> ProposalRecord | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM proposals WHERE id = ?", proposal_id
        )
        if not row:
            return None
        return ProposalRecord.model_validate_json(row["data"])

    async def list_proposals(self) -> list[ProposalRecord]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT data FROM proposals ORDER BY created_at"
        )
        return [ProposalRecord.model_validate_json(r["data"]) for r in rows]

    async def create_list(
        self, name: str, items: Sequence[Prospect] | None = None
    ) -> ContactList:
        created = await asyncio.to_thread(self._ensure_list, name)
        if created and items:
            await asyncio.to_thread(self._merge, name, items)
        contact_list = await self.get_list(name)
        assert contact_list is not None
        return contact_list

    async def get_list(self, name: str) -> ContactList | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT name, created_at, updated_at FROM contact_lists WHERE name = ?",
            name,
        )
        if not row:
            return None
        return await asyncio.to_thread(self._load_list, row)

    async def list_lists(self) -> list[ContactList]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT name, created_at, updated_at FROM contact_lists ORDER BY created_at",
        )
        return [await asyncio.to_thread(self._load_list, row) for row in rows]

    async def merge_into_list(self, name: str, items: Sequence[Prospect]) -> int:
        return await asyncio.to_thread(self._merge, name, list(items))

    async def find_contact(self, contact_id: str) -> Prospect | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM contact_list_items WHERE contact_id = ? LIMIT 1",
            contact_id,
        )
        if not row:
            return None
        return Prospect.model_validate_json(row["data"])
