"""
storage/kv.py -- Key-value persistence slots for the auth core.

The auth core touches durable storage through exactly one seam: a store that
maps a string key to a string value. UserStore writes the whole user
collection under one key and the current-session pointer under another, so
nothing here knows about users.

Usage:
    kv = SQLKeyValueStore("sqlite:///campaign_auth.db")
    kv.write("campaign_session", '{"user_id": "1", ...}')
    raw = kv.read("campaign_session")   # returns str or None
    kv.close()

Backends:
  MemoryKeyValueStore -- dict-backed; process lifetime only. Used by tests and
      by embedders that supply their own persistence.
  SQLKeyValueStore    -- SQLAlchemy Core table, one row per key. WAL mode on
      SQLite. Errors from the database propagate to the caller.

Layer rule: no imports from auth/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

logger = logging.getLogger("campaignauth.storage")


class KeyValueStore(Protocol):
    """The persistence boundary: read(key) -> str | None, write(key, value)."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

_metadata = MetaData()

_kv = Table(
    "kv_store",
    _metadata,
    Column("key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated_at", String(32), nullable=False),  # ISO 8601, informational
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLKeyValueStore:
    """Key-value slots in a single SQL table.

    write() is an upsert: update the row if the key exists, insert otherwise.
    Both happen inside one transaction (engine.begin()) so a failed write
    leaves the previous value intact.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def read(self, key: str) -> str | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_kv.c.value).where(_kv.c.key == key)).fetchone()
        return row.value if row is not None else None

    def write(self, key: str, value: str) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(_kv.update().where(_kv.c.key == key).values(value=value, updated_at=_now_iso()))
            if result.rowcount == 0:
                conn.execute(_kv.insert().values(key=key, value=value, updated_at=_now_iso()))
        logger.debug("Wrote key %r (%d chars)", key, len(value))

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(_kv.delete().where(_kv.c.key == key))

    def close(self) -> None:
        self.engine.dispose()
