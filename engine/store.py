"""SQLite-backed persistent store for the ledger.

Design principles:
  - WAL mode for concurrent reads during writes
  - One committed transaction per appended block
  - Single writer assumed (the kernel's exclusion scope)
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS blocks (
    block_index INTEGER PRIMARY KEY,
    prev_hash   TEXT    NOT NULL,
    timestamp   INTEGER NOT NULL,
    trades      TEXT    NOT NULL,
    nonce       INTEGER NOT NULL,
    hash        TEXT    NOT NULL
);
"""


class Store:
    """SQLite-backed persistent store.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Use ``":memory:"`` for tests.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info("Store opened: %s", db_path)

    def close(self) -> None:
        self._conn.close()

    # ── Blocks ────────────────────────────────────

    def append_block(self, block: Dict[str, Any]) -> None:
        """Persist one block in its wire shape.  Indices are unique."""
        self._conn.execute(
            """INSERT INTO blocks
               (block_index, prev_hash, timestamp, trades, nonce, hash)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                block["index"],
                block["prevHash"],
                block["timestamp"],
                json.dumps(block["trades"]),
                block["nonce"],
                block["hash"],
            ),
        )
        self._conn.commit()

    def get_blocks(self, since_index: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return blocks in index order, optionally only those after ``since_index``."""
        if since_index is not None:
            rows = self._conn.execute(
                "SELECT * FROM blocks WHERE block_index > ? ORDER BY block_index",
                (since_index,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM blocks ORDER BY block_index"
            ).fetchall()
        return [self._row_to_block(r) for r in rows]

    def block_count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM blocks").fetchone()
        return row[0]

    @staticmethod
    def _row_to_block(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "index": row["block_index"],
            "prevHash": row["prev_hash"],
            "timestamp": row["timestamp"],
            "trades": json.loads(row["trades"]),
            "nonce": row["nonce"],
            "hash": row["hash"],
        }
