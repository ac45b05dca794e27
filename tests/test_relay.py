from types import SimpleNamespace

import pytest

from services.bridge.relay import LINK_PLACEHOLDER, BridgeRelay, FilterVerdict, LinkFilter
from tests.conftest import bind_communities

OWNER_ID = "999"


def make_message(*, guild_id=101, channel_id=130, author_id=5, content="hello", bot=False, webhook_id=None):
    author = SimpleNamespace(
        id=author_id,
        bot=bot,
        display_name="Alice",
        display_avatar=SimpleNamespace(url="https://cdn.example/alice.png"),
    )
    return SimpleNamespace(
        id=1,
        author=author,
        webhook_id=webhook_id,
        guild=SimpleNamespace(id=guild_id) if guild_id else None,
        channel=SimpleNamespace(id=channel_id),
        content=content,
        attachments=[],
        embeds=[],
        stickers=[],
    )


@pytest.fixture
def relay(registry, fanout):
    bind_communities(registry, 3)
    return BridgeRelay(registry=registry, fanout=fanout, owner_id=OWNER_ID)


def sent_to(hub, registry, purpose):
    return {
        str(100 + n): hub[registry.endpoint_for(str(100 + n), purpose)].sent
        for n in (1, 2, 3)
    }


def test_link_filter_strips_links_when_enabled():
    enabled = {"value": True}
    link_filter = LinkFilter(lambda: enabled["value"])

    verdict = link_filter.check("deck: https://moxfield.com/decks/abc ok?")
    assert verdict == FilterVerdict(allowed=True, content=f"deck: {LINK_PLACEHOLDER} ok?")

    enabled["value"] = False
    assert link_filter.check("https://x.y").content == "https://x.y"


@pytest.mark.asyncio
async def test_discussion_relays_to_every_other_community(relay, registry, hub):
    outcomes = await relay.handle_message(make_message())

    assert [o.target.community_id for o in outcomes] == ["102", "103"]
    sent = sent_to(hub, registry, "discussion")
    assert sent["101"] == []
    assert sent["102"][0]["content"] == "hello"
    assert sent["102"][0]["username"] == "Alice"


@pytest.mark.asyncio
async def test_discussion_links_are_removed_when_filtering(relay, registry, hub):
    registry.set_filter_links(True)

    await relay.handle_message(make_message(content="see http://example.com"))

    assert sent_to(hub, registry, "discussion")["102"][0]["content"] == f"see {LINK_PLACEHOLDER}"


@pytest.mark.asyncio
async def test_news_is_owner_only_and_pings(relay, registry, hub):
    assert await relay.handle_message(make_message(channel_id=110, content="spoilers")) == []

    outcomes = await relay.handle_message(make_message(channel_id=110, author_id=int(OWNER_ID), content="spoilers"))

    assert len(outcomes) == 2
    assert sent_to(hub, registry, "news")["103"][0]["content"] == "<@&315> spoilers"


@pytest.mark.asyncio
async def test_lfg_channel_ignores_regular_members(relay):
    assert await relay.handle_message(make_message(channel_id=120, content="lfg anyone")) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"bot": True},
        {"webhook_id": 77},
        {"guild_id": None},
        {"channel_id": 4242},
        {"content": ""},
    ],
)
async def test_ignored_messages(relay, hub, overrides):
    assert await relay.handle_message(make_message(**overrides)) == []
    assert hub.total_sent() == 0


@pytest.mark.asyncio
async def test_custom_filter_can_block(registry, fanout, hub):
    bind_communities(registry, 2)

    class BlockEverything:
        def check(self, content):
            return FilterVerdict(allowed=False, content=content)

    relay = BridgeRelay(registry=registry, fanout=fanout, content_filter=BlockEverything())

    assert await relay.handle_message(make_message()) == []
    assert hub.total_sent() == 0
