from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..logging import get_logger
from ..util.errors import StorageError
from ..util.serialization import sanitize_for_json, stable_json_dumps

LOG = get_logger(__name__)


@dataclass(frozen=True)
class UploadRecord:
    id: int
    plan_filename: Optional[str]
    dot_filename: Optional[str]
    node_count: Optional[int]
    created_at: str


class UploadStore:
    """
    Processed node models keyed by an auto-incremented upload id.
    Use `:memory:` for a throwaway store.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path)
            if self._db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS uploads ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT,"
                "data TEXT NOT NULL,"
                "plan_filename TEXT,"
                "dot_filename TEXT,"
                "node_count INTEGER,"
                "created_at TEXT DEFAULT CURRENT_TIMESTAMP"
                ")"
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open upload store {self._db_path}: {e}") from e
        self._closed = False

    def __enter__(self) -> UploadStore:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def save(
        self,
        data: Mapping[str, Any],
        *,
        plan_filename: Optional[str] = None,
        dot_filename: Optional[str] = None,
    ) -> int:
        payload = stable_json_dumps(sanitize_for_json(dict(data)))
        try:
            cur = self._conn.execute(
                "INSERT INTO uploads (data, plan_filename, dot_filename, node_count) VALUES (?, ?, ?, ?)",
                (payload, plan_filename, dot_filename, len(data)),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to store upload: {e}") from e
        upload_id = int(cur.lastrowid)
        LOG.debug("Stored upload", extra={"upload_id": upload_id, "node_count": len(data)})
        return upload_id

    def get(self, upload_id: int) -> Dict[str, Any]:
        try:
            row = self._conn.execute("SELECT data FROM uploads WHERE id = ?", (int(upload_id),)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read upload {upload_id}: {e}") from e
        if not row:
            raise StorageError(f"Upload not found: {upload_id}")
        return json.loads(row[0])

    def list_uploads(self, *, limit: Optional[int] = None) -> List[UploadRecord]:
        query = "SELECT id, plan_filename, dot_filename, node_count, created_at FROM uploads ORDER BY id DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (int(limit),)
        try:
            rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list uploads: {e}") from e
        return [
            UploadRecord(
                id=int(r[0]),
                plan_filename=r[1],
                dot_filename=r[2],
                node_count=int(r[3]) if r[3] is not None else None,
                created_at=str(r[4] or ""),
            )
            for r in rows
        ]
