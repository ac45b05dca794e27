import json
from typing import Iterable, Optional

import httpx

from services.convoke.models import RoomPlayer, RoomRequest, RoomResponse
from shared.logging.logger import get_logger

log = get_logger("convoke.client")


class ConvokeClient:
    """
    Convoke Games room provider.

    Responsibilities:
    - Create a private 4-seat commander room for a filled lobby
    - Return the room URL, or None on any failure

    Never raises; callers fall back to manual room instructions.
    """

    API_BASE = "https://api.convoke.gg"
    CREATE_GAME_URL = f"{API_BASE}/game/create-game"
    USER_AGENT = "pdh-bridge-bot/1.0"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    # ------------------------------------------------------------

    async def create_room(
        self,
        *,
        game_id: int,
        guild_id: str,
        channel_id: str,
        players: Iterable[RoomPlayer],
    ) -> Optional[str]:
        if not self.api_key:
            log.error("No Convoke API key configured (set CONVOKE_TOKEN)")
            return None

        request = RoomRequest(
            api_key=self.api_key,
            game_id=game_id,
            guild_id=guild_id,
            channel_id=channel_id,
            players=list(players),
        )

        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.USER_AGENT,
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                r = await client.post(
                    self.CREATE_GAME_URL,
                    json=request.to_payload(),
                    headers=headers,
                )
            except httpx.HTTPError as e:
                log.error(f"Failed to reach Convoke for game #{game_id}: {e}")
                return None

        if r.status_code not in (200, 201):
            log.error(f"Convoke returned status {r.status_code} for game #{game_id}: {r.text[:300]}")
            if r.status_code in (401, 403):
                log.error("Convoke API key may be invalid or expired (check CONVOKE_TOKEN)")
            elif r.status_code == 429:
                log.error("Convoke rate limit hit while creating rooms")
            return None

        try:
            data = r.json()
        except ValueError as e:
            log.error(f"Convoke returned invalid JSON for game #{game_id}: {e}")
            return None

        response = RoomResponse.from_json(data)
        if response is None:
            log.error(
                f"Convoke success response for game #{game_id} had no room URL: "
                f"{json.dumps(data)[:300]}"
            )
            return None

        log.info(f"Convoke room created for game #{game_id}: {response.url}")
        return response.url
