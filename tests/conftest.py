"""
Shared pytest fixtures for the bridge and lobby test suites.
"""
from __future__ import annotations

import asyncio
import itertools
from types import SimpleNamespace
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import discord
import pytest

from services.bridge.fanout import DeliveryFanOut
from services.bridge.ledger import MessageLedger
from services.bridge.registry import ChannelBinding, CommunityBinding, DestinationRegistry
from services.bridge.webhooks import EndpointCache
from services.lobby.coordinator import LobbyCoordinator
from services.lobby.scheduler import TeardownScheduler
from services.lobby.storage import LobbyStore

ROOM_URL = "https://convoke.games/room/abc123"


def webhook_url(n: int) -> str:
    return f"https://discord.com/api/webhooks/{900 + n}/token-{n}"


def http_error(status: int = 500, reason: str = "Server Error") -> discord.HTTPException:
    return discord.HTTPException(SimpleNamespace(status=status, reason=reason), reason)


def not_found() -> discord.NotFound:
    return discord.NotFound(SimpleNamespace(status=404, reason="Not Found"), "Unknown Message")


class FakeWebhook:
    """Records webhook traffic; can be told to fail or stall."""

    _ids = itertools.count(10_000)

    def __init__(self, url: str):
        self.url = url
        self.sent: List[dict] = []
        self.edited: List[tuple] = []
        self.deleted: List[int] = []
        self.send_error: Optional[Exception] = None
        self.edit_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.delay: float = 0.0

    async def send(self, **kwargs):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(kwargs)
        return SimpleNamespace(id=next(self._ids))

    async def edit_message(self, message_id: int, **kwargs):
        if self.edit_error is not None:
            raise self.edit_error
        self.edited.append((message_id, kwargs))

    async def delete_message(self, message_id: int):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(message_id)


class WebhookHub:
    """Factory for EndpointCache that hands out FakeWebhooks per URL."""

    def __init__(self):
        self.webhooks: Dict[str, FakeWebhook] = {}
        self.created = 0

    def create(self, url: str) -> FakeWebhook:
        self.created += 1
        return self.webhooks.setdefault(url, FakeWebhook(url))

    def __getitem__(self, url: str) -> FakeWebhook:
        return self.webhooks.setdefault(url, FakeWebhook(url))

    def total_sent(self) -> int:
        return sum(len(w.sent) for w in self.webhooks.values())

    def total_deleted(self) -> int:
        return sum(len(w.deleted) for w in self.webhooks.values())


def bind_communities(registry: DestinationRegistry, count: int, purposes=("news", "lfg", "discussion")):
    for n in range(1, count + 1):
        registry.set_binding(
            CommunityBinding(
                community_id=str(100 + n),
                name=f"Server {n}",
                channels={
                    purpose: ChannelBinding(
                        channel_id=f"{n}{i}0",
                        webhook_url=webhook_url(n * 10 + i),
                        role_id=f"{n}{i}5",
                    )
                    for i, purpose in enumerate(purposes, start=1)
                },
            )
        )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "pdh-bridge.db"


@pytest.fixture
def registry(tmp_path):
    return DestinationRegistry(tmp_path / "bridge-config.json")


@pytest.fixture
def hub():
    return WebhookHub()


@pytest.fixture
def cache(hub):
    return EndpointCache(factory=hub.create)


@pytest.fixture
def fanout(cache, registry):
    return DeliveryFanOut(cache, registry, send_timeout=0.5)


@pytest.fixture
def store(db_path):
    return LobbyStore(db_path)


@pytest.fixture
def ledger(db_path):
    return MessageLedger(db_path)


@pytest.fixture
def rooms():
    client = AsyncMock()
    client.create_room = AsyncMock(return_value=ROOM_URL)
    return client


@pytest.fixture
def notifier():
    sink = AsyncMock()
    sink.send = AsyncMock(return_value=True)
    return sink


@pytest.fixture
def scheduler():
    return TeardownScheduler()


@pytest.fixture
def coordinator(store, ledger, fanout, registry, rooms, notifier, scheduler):
    bind_communities(registry, 3)
    return LobbyCoordinator(
        store=store,
        ledger=ledger,
        fanout=fanout,
        registry=registry,
        rooms=rooms,
        notifier=notifier,
        scheduler=scheduler,
        fill_grace_seconds=30.0,
    )
