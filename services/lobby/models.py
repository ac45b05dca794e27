from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

LOBBY_SEAT_LIMIT = 4

STATE_OPEN = "open"
STATE_FULL = "full"
STATE_CANCELLED = "cancelled"
STATE_EXPIRED = "expired"

TERMINAL_STATES = (STATE_CANCELLED, STATE_EXPIRED)

CATEGORY_LEAGUE = "league"
CATEGORY_CASUAL = "casual"
LOBBY_CATEGORIES = (CATEGORY_LEAGUE, CATEGORY_CASUAL)

CATEGORY_DISPLAY = {
    CATEGORY_LEAGUE: "PDH — League",
    CATEGORY_CASUAL: "PDH Games",
}

CATEGORY_EMOJI = {
    CATEGORY_LEAGUE: "🏆",
    CATEGORY_CASUAL: "🎮",
}

CATEGORY_COLOR = {
    CATEGORY_LEAGUE: 0xF1C40F,  # gold
    CATEGORY_CASUAL: 0x57F287,  # green
}


def category_display(category: str) -> str:
    return CATEGORY_DISPLAY.get(category, CATEGORY_DISPLAY[CATEGORY_CASUAL])


def category_emoji(category: str) -> str:
    return CATEGORY_EMOJI.get(category, CATEGORY_EMOJI[CATEGORY_CASUAL])


def category_color(category: str) -> int:
    return CATEGORY_COLOR.get(category, CATEGORY_COLOR[CATEGORY_CASUAL])


class LobbyReason(str, Enum):
    ALREADY_JOINED = "already_joined"
    LOBBY_FULL = "lobby_full"
    NOT_IN_GAME = "not_in_game"
    POST_NOT_FOUND = "post_not_found"
    NOT_HOST = "not_host"
    HOST_CANNOT_LEAVE = "host_cannot_leave"
    LOBBY_LOCKED = "lobby_locked"


@dataclass
class LobbyResult:
    """
    Typed outcome of a lobby operation.

    Admission conflicts are reported here rather than raised.
    """

    ok: bool
    reason: Optional[LobbyReason] = None
    seats: Optional[int] = None
    limit: int = LOBBY_SEAT_LIMIT
    state: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok

    @property
    def filled(self) -> bool:
        return self.ok and self.state == STATE_FULL

    @classmethod
    def rejected(
        cls,
        reason: LobbyReason,
        *,
        seats: Optional[int] = None,
        limit: int = LOBBY_SEAT_LIMIT,
        state: Optional[str] = None,
    ) -> "LobbyResult":
        return cls(ok=False, reason=reason, seats=seats, limit=limit, state=state)


@dataclass
class LobbyPost:
    post_id: int
    creator_id: str
    creator_name: str
    category: str
    note: str
    seat_limit: int
    seats: int
    created_at: int
    expires_at: int
    state: str = STATE_OPEN
    terminal: bool = False
    closed_reason: Optional[str] = None
    closed_at: Optional[int] = None

    @property
    def is_full(self) -> bool:
        return self.seats >= self.seat_limit

    @property
    def expires_at_dt(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)


@dataclass
class LobbyParticipant:
    post_id: int
    user_id: str
    username: str
    joined_at: int
