"""
Cross-Community Message Ledger

Remembers every remote copy delivered for a lobby post so that roster
updates and teardown can reach all of them later.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from shared.logging.logger import get_logger

log = get_logger("bridge.ledger")


@dataclass(frozen=True)
class MessageRecord:
    post_id: int
    community_id: str
    channel_id: str
    message_id: str


class MessageLedger:
    """
    Append/read store keyed by lobby post.

    Table:
      - lobby_messages  (UNIQUE(post_id, community_id, channel_id))
    """

    def __init__(self, db_path: Path | str = "data/pdh-bridge.db"):
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lobby_messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    post_id INTEGER NOT NULL,
                    community_id TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    recorded_at INTEGER NOT NULL,
                    UNIQUE(post_id, community_id, channel_id)
                )
                """
            )

    def record(
        self,
        post_id: int,
        community_id: str | int,
        channel_id: str | int,
        message_id: str | int,
    ) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO lobby_messages (
                    post_id, community_id, channel_id, message_id, recorded_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (post_id, str(community_id), str(channel_id), str(message_id), int(time.time())),
            )

    def record_outcomes(self, post_id: int, outcomes: Iterable) -> int:
        """
        Record every successful delivery outcome; returns how many were stored.
        """
        stored = 0
        for outcome in outcomes:
            if not outcome.ok:
                continue
            self.record(
                post_id,
                outcome.target.community_id,
                outcome.target.channel_id,
                outcome.message_id,
            )
            stored += 1
        log.debug(f"Ledger: {stored} copy/copies recorded for post #{post_id}")
        return stored

    def list_for(self, post_id: int) -> List[MessageRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT post_id, community_id, channel_id, message_id
                FROM lobby_messages
                WHERE post_id = ?
                ORDER BY id ASC
                """,
                (post_id,),
            ).fetchall()
        return [
            MessageRecord(
                post_id=row["post_id"],
                community_id=row["community_id"],
                channel_id=row["channel_id"],
                message_id=row["message_id"],
            )
            for row in rows
        ]
