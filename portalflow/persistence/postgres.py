"""PostgreSQL implementation of the portal repository."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Sequence

import asyncpg

from ..contracts import Prospect
from .models import ContactList, ProposalRecord
from .repository import PortalRepository


def _json(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


class PostgresPortalRepository(PortalRepository):
    """Persist proposals and contact lists using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS proposals (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL,
                data JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS contact_lists (
                name TEXT PRIMARY KEY,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS contact_list_items (
                list_name TEXT NOT NULL REFERENCES contact_lists (name),
                contact_id TEXT NOT NULL,
                position SERIAL,
                data JSONB NOT NULL,
                PRIMARY KEY (list_name, contact_id)
            )
            """
        )

    # ------------------------------------------------------------------
    async def save_proposal(self, record: ProposalRecord) -> ProposalRecord:
        now = datetime.now(timezone.utc)
        conn = await self._connect()
        try:
            created_at = await conn.fetchval(
                "SELECT created_at FROM proposals WHERE id = $1", record.id
            )
            stored = record.model_copy(
                update={"updated_at": now, "created_at": created_at or record.created_at}
            )
            await conn.execute(
                """
                INSERT INTO proposals (id, name, status, data, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO UPDATE
                SET name = EXCLUDED.name, status = EXCLUDED.status,
                    data = EXCLUDED.data, updated_at = EXCLUDED.updated_at
                """,
                stored.id,
                stored.name,
                stored.status.value,
                stored.model_dump_json(),
                stored.created_at,
                stored.updated_at,
            )
        finally:
            await conn.close()
        return stored

    async def get_proposal(self, proposal_id: str) -> ProposalRecord | None:
        conn = await self._connect()
        try:
            data = await conn.fetchval("SELECT data FROM proposals WHERE id = $1", proposal_id)
        finally:
            await conn.close()
        if data is None:
            return None
        return ProposalRecord.model_validate(_json(data))

    async def list_proposals(self) -> list[ProposalRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch("SELECT data FROM proposals ORDER BY created_at")
        finally:
            await conn.close()
        return [ProposalRecord.model_validate(_json(r["data"])) for r in rows]

    # ------------------------------------------------------------------
    async def create_list(
        self, name: str, items: Sequence[Prospect] | None = None
    ) -> ContactList:
        now = datetime.now(timezone.utc)
        conn = await self._connect()
        try:
            status = await conn.execute(
                """
                INSERT INTO contact_lists (name, created_at, updated_at)
                VALUES ($1, $2, $3) ON CONFLICT (name) DO NOTHING
                """,
                name,
                now,
                now,
            )
        finally:
            await conn.close()
        if status.endswith(" 1") and items:
            await self.merge_into_list(name, items)
        contact_list = await self.get_list(name)
        assert contact_list is not None
        return contact_list

    async def get_list(self, name: str) -> ContactList | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT name, created_at, updated_at FROM contact_lists WHERE name = $1",
                name,
            )
            if not row:
                return None
            items = await conn.fetch(
                "SELECT data FROM contact_list_items WHERE list_name = $1 ORDER BY position",
                name,
            )
        finally:
            await conn.close()
        return ContactList(
            name=row["name"],
            items=[Prospect.model_validate(_json(r["data"])) for r in items],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def list_lists(self) -> list[ContactList]:
        conn = await self._connect()
        try:
            names = await conn.fetch("SELECT name FROM contact_lists ORDER BY created_at")
        finally:
            await conn.close()
        lists = []
        for row in names:
            contact_list = await self.get_list(row["name"])
            if contact_list:
                lists.append(contact_list)
        return lists

    async def merge_into_list(self, name: str, items: Sequence[Prospect]) -> int:
        now = datetime.now(timezone.utc)
        added = 0
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO contact_lists (name, created_at, updated_at)
                    VALUES ($1, $2, $3) ON CONFLICT (name) DO NOTHING
                    """,
                    name,
                    now,
                    now,
                )
                for item in items:
                    status = await conn.execute(
                        """
                        INSERT INTO contact_list_items (list_name, contact_id, data)
                        VALUES ($1, $2, $3) ON CONFLICT DO NOTHING
                        """,
                        name,
                        item.id,
                        item.model_dump_json(),
                    )
                    if status.endswith(" 1"):
                        added += 1
                if added:
                    await conn.execute(
                        "UPDATE contact_lists SET updated_at = $1 WHERE name = $2", now, name
                    )
        finally:
            await conn.close()
        return added

    async def find_contact(self, contact_id: str) -> Prospect | None:
        conn = await self._connect()
        try:
            data = await conn.fetchval(
                "SELECT data FROM contact_list_items WHERE contact_id = $1 LIMIT 1",
                contact_id,
            )
        finally:
            await conn.close()
        if data is None:
            return None
        return Prospect.model_validate(_json(data))
