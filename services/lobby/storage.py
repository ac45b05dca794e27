from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, List, Mapping, Optional

from shared.logging.logger import get_logger
from services.lobby.models import (
    LOBBY_SEAT_LIMIT,
    STATE_FULL,
    STATE_OPEN,
    TERMINAL_STATES,
    LobbyParticipant,
    LobbyPost,
    LobbyReason,
    LobbyResult,
)

log = get_logger("services.lobby.storage")


class LobbyStore:
    """
    SQLite-backed lobby store.

    Tables:
      - lobby_posts
      - lobby_players   (UNIQUE(post_id, user_id))

    Every write runs under the process lock inside an immediate
    transaction, so writes to one post are serialized by the store.
    """

    def __init__(self, db_path: Path | str = "data/pdh-bridge.db"):
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    # ------------------------------------------------------------------
    # INTERNALS
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lobby_posts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    creator_id TEXT NOT NULL,
                    creator_name TEXT,
                    category TEXT NOT NULL DEFAULT 'casual',
                    note TEXT DEFAULT '',
                    seat_limit INTEGER NOT NULL DEFAULT 4,
                    seats INTEGER NOT NULL DEFAULT 1,
                    created_at INTEGER NOT NULL,
                    expires_at INTEGER NOT NULL,
                    state TEXT NOT NULL DEFAULT 'open',
                    terminal INTEGER NOT NULL DEFAULT 0,
                    closed_reason TEXT,
                    closed_at INTEGER
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lobby_players (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    post_id INTEGER NOT NULL,
                    user_id TEXT NOT NULL,
                    username TEXT NOT NULL,
                    joined_at INTEGER NOT NULL,
                    FOREIGN KEY (post_id) REFERENCES lobby_posts(id),
                    UNIQUE(post_id, user_id)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_lobby_posts_expiry
                ON lobby_posts(terminal, expires_at)
                """
            )

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------

    def _row_to_post(self, row: Mapping[str, Any]) -> LobbyPost:
        return LobbyPost(
            post_id=row["id"],
            creator_id=row["creator_id"],
            creator_name=row["creator_name"] or "",
            category=row["category"],
            note=row["note"] or "",
            seat_limit=row["seat_limit"],
            seats=row["seats"],
            created_at=row["created_at"],
            expires_at=row["expires_at"],
            state=row["state"],
            terminal=bool(row["terminal"]),
            closed_reason=row["closed_reason"],
            closed_at=row["closed_at"],
        )

    def _count(self, conn: sqlite3.Connection, post_id: int) -> int:
        return conn.execute(
            "SELECT COUNT(*) AS cnt FROM lobby_players WHERE post_id = ?",
            (post_id,),
        ).fetchone()["cnt"]

    def _live_post_row(self, conn: sqlite3.Connection, post_id: int) -> Optional[sqlite3.Row]:
        return conn.execute(
            "SELECT * FROM lobby_posts WHERE id = ? AND terminal = 0",
            (post_id,),
        ).fetchone()

    def _set_seats(self, conn: sqlite3.Connection, post_id: int, seats: int, state: str) -> None:
        conn.execute(
            "UPDATE lobby_posts SET seats = ?, state = ? WHERE id = ?",
            (seats, state, post_id),
        )

    # ------------------------------------------------------------------
    # POSTS
    # ------------------------------------------------------------------

    def create_post(
        self,
        *,
        creator_id: str,
        creator_name: str,
        category: str,
        note: str,
        expires_at: int,
        seat_limit: int = LOBBY_SEAT_LIMIT,
        now: Optional[int] = None,
    ) -> LobbyPost:
        """
        Insert a post with the creator auto-seated as participant #1.
        """
        created_at = int(now if now is not None else time.time())

        with self._lock, self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                """
                INSERT INTO lobby_posts (
                    creator_id, creator_name, category, note,
                    seat_limit, seats, created_at, expires_at, state, terminal
                ) VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?, 0)
                """,
                (
                    str(creator_id),
                    creator_name,
                    category,
                    note or "",
                    seat_limit,
                    created_at,
                    int(expires_at),
                    STATE_OPEN,
                ),
            )
            post_id = cursor.lastrowid
            conn.execute(
                """
                INSERT INTO lobby_players (post_id, user_id, username, joined_at)
                VALUES (?, ?, ?, ?)
                """,
                (post_id, str(creator_id), creator_name, created_at),
            )
            row = conn.execute("SELECT * FROM lobby_posts WHERE id = ?", (post_id,)).fetchone()

        return self._row_to_post(row)

    def get_post(self, post_id: int, *, include_terminal: bool = False) -> Optional[LobbyPost]:
        with self._lock, self._connect() as conn:
            if include_terminal:
                row = conn.execute("SELECT * FROM lobby_posts WHERE id = ?", (post_id,)).fetchone()
            else:
                row = self._live_post_row(conn, post_id)
        if not row:
            return None
        return self._row_to_post(row)

    def close_post(self, post_id: int, state: str, *, reason: Optional[str] = None) -> bool:
        """
        Set the terminal flag. Returns False when the post was already terminal.
        """
        if state not in TERMINAL_STATES:
            raise ValueError(f"Invalid terminal lobby state: {state}")

        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE lobby_posts
                SET terminal = 1, state = ?, closed_reason = ?, closed_at = ?
                WHERE id = ? AND terminal = 0
                """,
                (state, reason or state, int(time.time()), post_id),
            )
        return cursor.rowcount == 1

    def expired_posts(self, now: Optional[int] = None) -> List[LobbyPost]:
        cutoff = int(now if now is not None else time.time())
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM lobby_posts
                WHERE terminal = 0 AND expires_at <= ?
                ORDER BY expires_at ASC
                """,
                (cutoff,),
            ).fetchall()
        return [self._row_to_post(row) for row in rows]

    def live_posts(self) -> List[LobbyPost]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM lobby_posts WHERE terminal = 0 ORDER BY id ASC"
            ).fetchall()
        return [self._row_to_post(row) for row in rows]

    # ------------------------------------------------------------------
    # PARTICIPANTS
    # ------------------------------------------------------------------

    def add_participant(self, post_id: int, user_id: str, username: str) -> LobbyResult:
        """
        Seat a user: check, insert, re-count, compensate.

        1. seats already at the limit → lobby_full
        2. (post, user) uniqueness violation → already_joined
        3. re-count above the limit → remove the new row, lobby_full
        4. persist the corrected seat count (and `full` state)
        """
        with self._lock, self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")

            row = self._live_post_row(conn, post_id)
            if not row:
                return LobbyResult.rejected(LobbyReason.POST_NOT_FOUND)
            limit = row["seat_limit"]

            current = self._count(conn, post_id)
            if current >= limit:
                return LobbyResult.rejected(
                    LobbyReason.LOBBY_FULL, seats=current, limit=limit, state=row["state"]
                )

            try:
                conn.execute(
                    """
                    INSERT INTO lobby_players (post_id, user_id, username, joined_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (post_id, str(user_id), username, int(time.time())),
                )
            except sqlite3.IntegrityError:
                return LobbyResult.rejected(
                    LobbyReason.ALREADY_JOINED, seats=current, limit=limit, state=row["state"]
                )

            recount = self._count(conn, post_id)
            if recount > limit:
                conn.execute(
                    "DELETE FROM lobby_players WHERE post_id = ? AND user_id = ?",
                    (post_id, str(user_id)),
                )
                corrected = self._count(conn, post_id)
                self._set_seats(conn, post_id, corrected, STATE_FULL)
                log.warning(f"Over-admission detected on post #{post_id}; join rolled back")
                return LobbyResult.rejected(
                    LobbyReason.LOBBY_FULL, seats=corrected, limit=limit, state=STATE_FULL
                )

            state = STATE_FULL if recount >= limit else STATE_OPEN
            self._set_seats(conn, post_id, recount, state)

        return LobbyResult(ok=True, seats=recount, limit=limit, state=state)

    def remove_participant(self, post_id: int, user_id: str) -> LobbyResult:
        with self._lock, self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")

            row = self._live_post_row(conn, post_id)
            if not row:
                return LobbyResult.rejected(LobbyReason.POST_NOT_FOUND)
            limit = row["seat_limit"]

            if row["state"] == STATE_FULL:
                return LobbyResult.rejected(
                    LobbyReason.LOBBY_LOCKED, seats=row["seats"], limit=limit, state=STATE_FULL
                )

            cursor = conn.execute(
                "DELETE FROM lobby_players WHERE post_id = ? AND user_id = ?",
                (post_id, str(user_id)),
            )
            if cursor.rowcount == 0:
                return LobbyResult.rejected(
                    LobbyReason.NOT_IN_GAME, seats=row["seats"], limit=limit, state=row["state"]
                )

            seats = self._count(conn, post_id)
            self._set_seats(conn, post_id, seats, STATE_OPEN)

        return LobbyResult(ok=True, seats=seats, limit=limit, state=STATE_OPEN)

    def participants(self, post_id: int) -> List[LobbyParticipant]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT post_id, user_id, username, joined_at
                FROM lobby_players
                WHERE post_id = ?
                ORDER BY joined_at ASC, id ASC
                """,
                (post_id,),
            ).fetchall()
        return [
            LobbyParticipant(
                post_id=row["post_id"],
                user_id=row["user_id"],
                username=row["username"],
                joined_at=row["joined_at"],
            )
            for row in rows
        ]

    def seat_count(self, post_id: int) -> int:
        with self._lock, self._connect() as conn:
            return self._count(conn, post_id)
