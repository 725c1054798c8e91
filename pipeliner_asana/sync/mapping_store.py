"""Opportunity-to-project mapping storage.

The mapping makes webhook handling idempotent: one Asana project per Pipeliner
opportunity. Handlers hold ``store.lock(opportunity_id)`` across the
lookup, project creation and ``put_if_absent`` so concurrent deliveries for the
same opportunity cannot both create a project.
"""

import asyncio
import sqlite3
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager, closing
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, Optional

from pipeliner_asana.settings import AppSettings
from pipeliner_asana.util.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS project_mappings (
    opportunity_id TEXT PRIMARY KEY,
    project_gid TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class MappingStore(ABC):
    """Interface for opportunity id -> Asana project gid storage."""

    def __init__(self) -> None:
        self._locks: Dict[str, _KeyLock] = {}

    @abstractmethod
    def get(self, opportunity_id: str) -> Optional[str]:
        """Return the mapped project gid, or None."""

    @abstractmethod
    def put(self, opportunity_id: str, project_gid: str) -> None:
        """Store or replace the mapping."""

    @abstractmethod
    def put_if_absent(self, opportunity_id: str, project_gid: str) -> bool:
        """Store the mapping only if none exists. Returns True if stored."""

    @asynccontextmanager
    async def lock(self, opportunity_id: str) -> AsyncIterator[None]:
        """Serialize handlers working on the same opportunity in this process."""
        entry = self._locks.get(opportunity_id)
        if entry is None:
            entry = self._locks[opportunity_id] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                # Drop idle locks so the registry does not grow with every id
                del self._locks[opportunity_id]

    def is_locked(self, opportunity_id: str) -> bool:
        entry = self._locks.get(opportunity_id)
        return entry is not None and entry.lock.locked()


class MemoryMappingStore(MappingStore):
    """Process-local store; mappings are lost on restart."""

    def __init__(self) -> None:
        super().__init__()
        self._mappings: Dict[str, str] = {}

    def get(self, opportunity_id: str) -> Optional[str]:
        return self._mappings.get(opportunity_id)

    def put(self, opportunity_id: str, project_gid: str) -> None:
        self._mappings[opportunity_id] = project_gid
        logger.info(f"Mapping stored: Opportunity {opportunity_id} -> Project {project_gid}")

    def put_if_absent(self, opportunity_id: str, project_gid: str) -> bool:
        if opportunity_id in self._mappings:
            return False
        self.put(opportunity_id, project_gid)
        return True


class SQLiteMappingStore(MappingStore):
    """
    SQLite-backed store. ``put_if_absent`` relies on the primary key, so it
    stays atomic even with several worker processes sharing the file.
    """

    def __init__(self, db_path: str | Path = "mappings.db"):
        super().__init__()
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with closing(self._connection()) as conn, conn:
            conn.execute(SCHEMA)

    def get(self, opportunity_id: str) -> Optional[str]:
        with closing(self._connection()) as conn:
            row = conn.execute(
                "SELECT project_gid FROM project_mappings WHERE opportunity_id = ?",
                (opportunity_id,),
            ).fetchone()
        return row["project_gid"] if row else None

    def put(self, opportunity_id: str, project_gid: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with closing(self._connection()) as conn, conn:
            conn.execute(
                """
                INSERT INTO project_mappings (opportunity_id, project_gid, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(opportunity_id) DO UPDATE SET
                    project_gid = excluded.project_gid,
                    updated_at = excluded.updated_at
                """,
                (opportunity_id, project_gid, now, now),
            )
        logger.info(f"Mapping stored: Opportunity {opportunity_id} -> Project {project_gid}")

    def put_if_absent(self, opportunity_id: str, project_gid: str) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        with closing(self._connection()) as conn, conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO project_mappings
                    (opportunity_id, project_gid, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (opportunity_id, project_gid, now, now),
            )
            stored = cursor.rowcount == 1
        if stored:
            logger.info(
                f"Mapping stored: Opportunity {opportunity_id} -> Project {project_gid}"
            )
        return stored


def build_mapping_store(app_settings: AppSettings) -> MappingStore:
    """Create the store selected by MAPPING_DB_PATH."""
    if app_settings.uses_memory_store():
        logger.warning(
            "Using in-memory mapping store; opportunity mappings are lost on restart"
        )
        return MemoryMappingStore()
    return SQLiteMappingStore(app_settings.mapping_db_path)
