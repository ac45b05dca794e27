"""
Lobby Coordinator

Owns the lifecycle of cross-community LFG posts.

State machine:
  open  -> open | full      (join / leave)
  full  -> cancelled        (fill grace teardown)
  open | full -> cancelled  (host cancel)
  open  -> expired          (expiry sweep)

Terminal states are absorbing; the store's terminal flag is claimed
before any remote copy is removed, so teardown runs at most once.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional

import discord

from shared.config.bridge import PURPOSE_LFG
from shared.logging.logger import get_logger
from services.bridge.fanout import DeliveryFanOut, RelayPayload, delivered
from services.bridge.ledger import MessageLedger
from services.bridge.registry import DestinationRegistry
from services.convoke.client import ConvokeClient
from services.convoke.models import RoomPlayer
from services.lobby.cards import LOBBY_SENDER_LABEL, build_lobby_embed, build_lobby_view
from services.lobby.models import (
    LOBBY_CATEGORIES,
    STATE_CANCELLED,
    STATE_EXPIRED,
    STATE_FULL,
    LobbyParticipant,
    LobbyPost,
    LobbyReason,
    LobbyResult,
    category_display,
)
from services.lobby.notifications import DirectNotifier, build_fill_message
from services.lobby.scheduler import TeardownScheduler
from services.lobby.storage import LobbyStore

log = get_logger("lobby.coordinator")

DEFAULT_FILL_GRACE_SECONDS = 30.0

CLOSE_REASON_FILLED = "filled"
CLOSE_REASON_CANCELLED = "cancelled"
CLOSE_REASON_EXPIRED = "expired"


class LobbyCoordinator:
    def __init__(
        self,
        *,
        store: LobbyStore,
        ledger: MessageLedger,
        fanout: DeliveryFanOut,
        registry: DestinationRegistry,
        rooms: ConvokeClient,
        notifier: DirectNotifier,
        scheduler: Optional[TeardownScheduler] = None,
        fill_grace_seconds: float = DEFAULT_FILL_GRACE_SECONDS,
    ):
        self._store = store
        self._ledger = ledger
        self._fanout = fanout
        self._registry = registry
        self._rooms = rooms
        self._notifier = notifier
        self._scheduler = scheduler or TeardownScheduler()
        self._fill_grace_seconds = fill_grace_seconds
        self._views: Dict[int, List[discord.ui.View]] = {}

    @property
    def scheduler(self) -> TeardownScheduler:
        return self._scheduler

    # ------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------

    def get_post(self, post_id: int) -> Optional[LobbyPost]:
        return self._store.get_post(post_id)

    def participants(self, post_id: int) -> List[LobbyParticipant]:
        return self._store.participants(post_id)

    def live_posts(self) -> List[LobbyPost]:
        return self._store.live_posts()

    # ------------------------------------------------------------
    # Create
    # ------------------------------------------------------------

    async def create_post(
        self,
        *,
        creator_id: str,
        creator_name: str,
        category: str,
        note: str = "",
        expiry_minutes: Optional[int] = None,
        creator_avatar: Optional[str] = None,
    ) -> int:
        """
        Persist a post and broadcast its card to every LFG channel.

        The originating community receives its copy through the same
        broadcast as everyone else.
        """
        if category not in LOBBY_CATEGORIES:
            raise ValueError(f"Unknown lobby category: {category}")

        minutes = expiry_minutes or self._registry.lfg_expiry_minutes
        post = self._store.create_post(
            creator_id=str(creator_id),
            creator_name=creator_name,
            category=category,
            note=(note or "").strip(),
            expires_at=int(time.time()) + minutes * 60,
        )

        embed = build_lobby_embed(
            post,
            self._store.participants(post.post_id),
            thumbnail_url=creator_avatar,
        )
        targets = self._registry.resolve_targets(PURPOSE_LFG)
        outcomes = await self._fanout.broadcast_as_system(
            RelayPayload(embeds=[embed]),
            targets,
            LOBBY_SENDER_LABEL,
            ping_role=True,
            view=self._track_view(post.post_id, build_lobby_view(post)),
        )
        self._ledger.record_outcomes(post.post_id, outcomes)

        log.info(
            f"Post #{post.post_id} ({category_display(category)}) broadcast to "
            f"{len(delivered(outcomes))}/{len(targets)} communities"
        )

        # Joins and teardowns during the broadcast only saw a partial ledger
        current = self._store.get_post(post.post_id, include_terminal=True)
        if current is not None and current.terminal:
            records = self._ledger.list_for(post.post_id)
            removed = await self._fanout.delete_remote(records, PURPOSE_LFG)
            self._release_views(post.post_id)
            log.info(
                f"Post #{post.post_id} closed during broadcast: "
                f"removed {removed}/{len(records)} late cop{'y' if len(records) == 1 else 'ies'}"
            )
        elif current is not None and current.seats != 1:
            await self.refresh_cards(post.post_id)

        return post.post_id

    # ------------------------------------------------------------
    # Join / leave / cancel
    # ------------------------------------------------------------

    async def join(self, post_id: int, user_id: str, user_name: str) -> LobbyResult:
        result = self._store.add_participant(post_id, str(user_id), user_name)
        if not result:
            log.debug(f"Join on post #{post_id} by {user_id} rejected: {result.reason.value}")
            return result

        await self.refresh_cards(post_id)

        if result.filled:
            log.info(f"Post #{post_id} is full; starting fill sequence")
            await self._fill(post_id)

        return result

    async def leave(self, post_id: int, user_id: str) -> LobbyResult:
        post = self._store.get_post(post_id)
        if post is None:
            return LobbyResult.rejected(LobbyReason.POST_NOT_FOUND)
        if str(user_id) == post.creator_id:
            return LobbyResult.rejected(
                LobbyReason.HOST_CANNOT_LEAVE,
                seats=post.seats,
                limit=post.seat_limit,
                state=post.state,
            )

        result = self._store.remove_participant(post_id, str(user_id))
        if result:
            await self.refresh_cards(post_id)
        return result

    async def cancel(self, post_id: int, requester_id: str) -> LobbyResult:
        post = self._store.get_post(post_id)
        if post is None:
            return LobbyResult.rejected(LobbyReason.POST_NOT_FOUND)
        if str(requester_id) != post.creator_id:
            return LobbyResult.rejected(
                LobbyReason.NOT_HOST,
                seats=post.seats,
                limit=post.seat_limit,
                state=post.state,
            )

        self._scheduler.cancel(post_id)
        if not await self.teardown(post_id, STATE_CANCELLED, reason=CLOSE_REASON_CANCELLED):
            return LobbyResult.rejected(LobbyReason.POST_NOT_FOUND)

        log.info(f"Post #{post_id} cancelled by host")
        return LobbyResult(
            ok=True,
            seats=post.seats,
            limit=post.seat_limit,
            state=STATE_CANCELLED,
        )

    # ------------------------------------------------------------
    # Roster propagation
    # ------------------------------------------------------------

    async def refresh_cards(self, post_id: int) -> int:
        """
        Replay the current roster onto every remote copy; returns edits applied.
        """
        post = self._store.get_post(post_id)
        if post is None:
            return 0

        records = self._ledger.list_for(post_id)
        if not records:
            return 0

        embed = build_lobby_embed(post, self._store.participants(post_id))
        edited = await self._fanout.edit_remote(
            records,
            PURPOSE_LFG,
            embed=embed,
            view=self._track_view(post_id, build_lobby_view(post)),
        )
        if edited < len(records):
            log.debug(f"Post #{post_id}: {edited}/{len(records)} card(s) updated")
        return edited

    # ------------------------------------------------------------
    # Fill
    # ------------------------------------------------------------

    async def _fill(self, post_id: int) -> None:
        post = self._store.get_post(post_id)
        if post is None:
            log.info(f"Post #{post_id} closed before the fill sequence ran")
            return

        participants = self._store.participants(post_id)
        records = self._ledger.list_for(post_id)
        origin = records[0] if records else None

        room_url = await self._rooms.create_room(
            game_id=post_id,
            guild_id=origin.community_id if origin else "unknown",
            channel_id=origin.channel_id if origin else "unknown",
            players=[RoomPlayer(user_id=p.user_id, username=p.username) for p in participants],
        )
        if self._store.get_post(post_id) is None:
            log.info(f"Post #{post_id} closed during room creation; notifications skipped")
            return
        if room_url is None:
            log.warning(f"Room creation failed for post #{post_id}; sending manual instructions")

        message = build_fill_message(post, participants, room_url)
        results = await asyncio.gather(
            *(self._notify(player, message) for player in participants)
        )

        log.info(
            f"Post #{post_id}: sent DMs to {sum(1 for ok in results if ok)}/{len(participants)} players"
            + (" with room link" if room_url else " (manual fallback)")
        )

        self._scheduler.schedule(post_id, self._fill_grace_seconds, self._teardown_filled)

    async def _notify(self, player: LobbyParticipant, message: str) -> bool:
        try:
            return await self._notifier.send(player.user_id, message)
        except Exception as e:
            log.warning(f"Couldn't DM {player.username}: {e}")
            return False

    def _track_view(self, post_id: int, view: Optional[discord.ui.View]) -> Optional[discord.ui.View]:
        if view is not None:
            self._views.setdefault(post_id, []).append(view)
        return view

    def _release_views(self, post_id: int) -> None:
        # Persistent views stay in the client's view store until stopped
        for view in self._views.pop(post_id, []):
            view.stop()

    async def _teardown_filled(self, post_id: int) -> None:
        if await self.teardown(post_id, STATE_CANCELLED, reason=CLOSE_REASON_FILLED):
            log.info(f"Post #{post_id} cleaned up after filling")

    # ------------------------------------------------------------
    # Teardown / expiry
    # ------------------------------------------------------------

    async def teardown(self, post_id: int, state: str, *, reason: Optional[str] = None) -> bool:
        """
        Mark the post terminal, then remove every remote copy best effort.

        Returns False when the post was already terminal.
        """
        if not self._store.close_post(post_id, state, reason=reason):
            log.debug(f"Post #{post_id} already closed; teardown skipped")
            return False

        self._scheduler.cancel(post_id)
        self._release_views(post_id)

        records = self._ledger.list_for(post_id)
        removed = await self._fanout.delete_remote(records, PURPOSE_LFG)
        log.info(
            f"Post #{post_id} {state} ({reason or state}): "
            f"removed {removed}/{len(records)} remote cop{'y' if len(records) == 1 else 'ies'}"
        )
        return True

    async def expire_sweep(self, now: Optional[int] = None) -> List[int]:
        """
        Close every post past its expiry; returns the ids closed by this pass.

        Full posts with a pending fill timer are left to the timer.
        """
        closed: List[int] = []

        for post in self._store.expired_posts(now):
            if post.state == STATE_FULL:
                if post.post_id in self._scheduler:
                    continue
                state, reason = STATE_CANCELLED, CLOSE_REASON_FILLED
            else:
                state, reason = STATE_EXPIRED, CLOSE_REASON_EXPIRED

            try:
                if await self.teardown(post.post_id, state, reason=reason):
                    closed.append(post.post_id)
            except Exception as e:
                log.error(f"Failed to clean up post #{post.post_id}: {e}")

        if closed:
            log.info(f"Expiry sweep closed {len(closed)} post(s)")
        return closed

    def shutdown(self) -> None:
        self._scheduler.cancel_all()
