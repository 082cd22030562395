"""DB-backed key/value store for session persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.db import execute, fetch_all, fetch_one, get_conn

logger = logging.getLogger("refbook.db")

_SCHEMA_SQL = """
create table if not exists kv_items (
    tenant_id text not null,
    key text not null,
    value text not null,
    updated_at text not null,
    primary key (tenant_id, key)
)
"""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DbKeyValueStore:
    """Postgres rendition of :class:`app.stores.MemoryKeyValueStore`.

    Every call runs in its own pooled connection; there is no cross-key
    transaction, matching the single-record write model of the stores above it.
    """

    def __init__(self, tenant_id: str = "default", ensure_schema: bool = True) -> None:
        self.tenant_id = tenant_id
        self._schema_ready = False
        if ensure_schema:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with get_conn() as conn:
            execute(conn, _SCHEMA_SQL, query_name="kv_items.ensure_schema")
        self._schema_ready = True
        logger.info("kv_items schema ready")

    def get_item(self, key: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select value from kv_items where tenant_id=%s and key=%s",
                [self.tenant_id, key],
                query_name="kv_items.get",
            )
        return row.get("value") if row else None

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("value must be a string")
        with get_conn() as conn:
            execute(
                conn,
                """
                insert into kv_items (tenant_id, key, value, updated_at)
                values (%s,%s,%s,%s)
                on conflict (tenant_id, key) do update set value=excluded.value, updated_at=excluded.updated_at
                """,
                [self.tenant_id, key, value, _now()],
                query_name="kv_items.set",
            )

    def remove_item(self, key: str) -> None:
        with get_conn() as conn:
            execute(
                conn,
                "delete from kv_items where tenant_id=%s and key=%s",
                [self.tenant_id, key],
                query_name="kv_items.remove",
            )

    def keys(self, prefix: str = "") -> list[str]:
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                "select key from kv_items where tenant_id=%s and key like %s order by key",
                [self.tenant_id, _escape_like(prefix) + "%"],
                query_name="kv_items.keys",
            )
        return [row["key"] for row in rows if isinstance(row.get("key"), str)]
