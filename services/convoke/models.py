from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CONVOKE_SEAT_LIMIT = 4
CONVOKE_FORMAT = "commander"


@dataclass(frozen=True)
class RoomPlayer:
    user_id: str
    username: str

    def to_payload(self) -> Dict[str, str]:
        return {"id": str(self.user_id), "name": self.username}


@dataclass
class RoomRequest:
    """
    Request body for a private matchmaking room.

    Convoke authenticates through `apiKey` in the body; every id is sent
    as a string.
    """

    api_key: str
    game_id: int
    guild_id: str
    channel_id: str
    players: List[RoomPlayer] = field(default_factory=list)
    seat_limit: int = CONVOKE_SEAT_LIMIT
    game_format: str = CONVOKE_FORMAT
    public: bool = False

    @property
    def name(self) -> str:
        return f"PDH Game #{self.game_id}"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "apiKey": self.api_key,
            "isPublic": self.public,
            "name": self.name,
            "spellbotGameId": str(self.game_id),
            "seatLimit": self.seat_limit,
            "format": self.game_format,
            "discordGuild": str(self.guild_id),
            "discordChannel": str(self.channel_id),
            "discordPlayers": [player.to_payload() for player in self.players],
        }


@dataclass
class RoomResponse:
    url: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> Optional["RoomResponse"]:
        """
        Decode a create-game response; a missing or empty `url` yields None.
        """
        if not isinstance(data, dict):
            return None
        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            return None
        return cls(url=url.strip(), raw=data)
