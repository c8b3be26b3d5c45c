"""Key-value persistence ports for mindspread."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional, List, Dict, Any, Protocol

from mindspread.config import get_db_path
from mindspread.errors import StorageError
from mindspread.model import Node, nodes_to_dicts, nodes_from_dicts

logger = logging.getLogger(__name__)

NODES_KEY = "mindmapNodes"
HISTORY_KEY = "mindmapHistory"


class KeyValueStore(Protocol):
    """String-keyed, string-valued local storage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store, used for tests and scratch engines."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class SqliteStore:
    """Key-value store backed by a single SQLite table."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        try:
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
            """)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def get(self, key: str) -> Optional[str]:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key!r} from {self.db_path}: {e}") from e
        if not row:
            return None
        return row["value"]

    def set(self, key: str, value: str) -> None:
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value)
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key!r} to {self.db_path}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to remove {key!r} from {self.db_path}: {e}") from e

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ==================== Snapshot persistence ====================

def save_nodes(store: KeyValueStore, nodes: List[Node]):
    """Write the node collection under the nodes key."""
    store.set(NODES_KEY, json.dumps(nodes_to_dicts(nodes)))


def save_history(store: KeyValueStore, undo: List[Dict[str, Any]], redo: List[Dict[str, Any]]):
    """Write both history stacks under the history key."""
    store.set(HISTORY_KEY, json.dumps({"undo": undo, "redo": redo}))


def clear_history(store: KeyValueStore):
    store.remove(HISTORY_KEY)


def load_nodes(store: KeyValueStore) -> Optional[List[Node]]:
    """Read the stored node collection.

    Returns None when nothing is stored or the payload is malformed; the
    latter is logged and otherwise ignored.
    """
    raw = store.get(NODES_KEY)
    if raw is None:
        return None
    try:
        return nodes_from_dicts(json.loads(raw))
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing saved nodes: {e}")
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Saved nodes are malformed: {e!r}")
    return None
