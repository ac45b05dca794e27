from types import SimpleNamespace

import discord
import pytest

from services.bridge.fanout import AttachmentBlob, DeliveryFanOut, RelayPayload, SenderIdentity, delivered
from services.bridge.ledger import MessageRecord
from tests.conftest import bind_communities, http_error, not_found


def lfg_url(n):
    return f"https://discord.com/api/webhooks/{900 + n * 10 + 2}/token-{n * 10 + 2}"


@pytest.mark.asyncio
async def test_one_failing_target_does_not_block_the_rest(registry, fanout, hub):
    bind_communities(registry, 5)
    hub[lfg_url(3)].send_error = http_error(500)
    targets = registry.resolve_targets("lfg")

    outcomes = await fanout.relay_as_user(
        RelayPayload(content="anyone up for a game?"),
        targets,
        SenderIdentity(name="Alice", avatar_url="https://cdn.example/alice.png"),
    )

    assert [o.target.community_id for o in outcomes] == ["101", "102", "103", "104", "105"]
    assert len(delivered(outcomes)) == 4
    failed = [o for o in outcomes if not o.ok]
    assert [o.target.community_id for o in failed] == ["103"]
    assert failed[0].error
    sent = hub[lfg_url(1)].sent[0]
    assert sent["username"] == "Alice"
    assert sent["avatar_url"] == "https://cdn.example/alice.png"
    assert sent["wait"] is True


@pytest.mark.asyncio
async def test_stalled_target_times_out(registry, cache, hub):
    bind_communities(registry, 2)
    hub[lfg_url(2)].delay = 1.0
    fanout = DeliveryFanOut(cache, registry, send_timeout=0.05)

    outcomes = await fanout.broadcast_as_system(
        RelayPayload(content="hi"), registry.resolve_targets("lfg"), "PDH Bridge"
    )

    assert outcomes[0].ok
    assert outcomes[1].error == "timeout"


@pytest.mark.asyncio
async def test_preview_embeds_are_dropped(registry, fanout, hub):
    bind_communities(registry, 1)
    rich = discord.Embed(title="Decklist")
    preview = discord.Embed.from_dict({"type": "link", "url": "https://example.com"})

    await fanout.relay_as_user(
        RelayPayload(content="look", embeds=[rich, preview]),
        registry.resolve_targets("discussion"),
        SenderIdentity(name="Bob"),
    )

    sent = hub.webhooks[registry.endpoint_for(101, "discussion")].sent[0]
    assert sent["embeds"] == [rich]
    assert "avatar_url" not in sent


@pytest.mark.asyncio
async def test_role_ping_only_allows_that_role(registry, fanout, hub):
    bind_communities(registry, 1)

    await fanout.broadcast_as_system(
        RelayPayload(content="New set spoilers!"),
        registry.resolve_targets("news"),
        "PDH Bridge",
        ping_role=True,
    )

    sent = hub.webhooks[registry.endpoint_for(101, "news")].sent[0]
    assert sent["content"] == "<@&115> New set spoilers!"
    mentions = sent["allowed_mentions"]
    assert mentions.everyone is False
    assert mentions.users is False
    assert [role.id for role in mentions.roles] == [115]


@pytest.mark.asyncio
async def test_without_ping_mentions_are_suppressed(registry, fanout, hub):
    bind_communities(registry, 1)

    await fanout.relay_as_user(
        RelayPayload(content="@everyone hello"),
        registry.resolve_targets("discussion"),
        SenderIdentity(name="Mallory"),
    )

    mentions = hub.webhooks[registry.endpoint_for(101, "discussion")].sent[0]["allowed_mentions"]
    assert mentions.everyone is False
    assert mentions.roles is False
    assert mentions.users is False


@pytest.mark.asyncio
async def test_each_target_gets_its_own_file(registry, fanout, hub):
    bind_communities(registry, 2)
    blob = AttachmentBlob(filename="deck.png", data=b"\x89PNG")

    await fanout.relay_as_user(
        RelayPayload(attachments=[blob]),
        registry.resolve_targets("discussion"),
        SenderIdentity(name="Carol"),
    )

    first = hub.webhooks[registry.endpoint_for(101, "discussion")].sent[0]["files"][0]
    second = hub.webhooks[registry.endpoint_for(102, "discussion")].sent[0]["files"][0]
    assert first is not second
    assert first.filename == second.filename == "deck.png"


@pytest.mark.asyncio
async def test_webhook_clients_are_reused(registry, fanout, hub):
    bind_communities(registry, 2)
    targets = registry.resolve_targets("lfg")

    await fanout.relay_as_user(RelayPayload(content="one"), targets, SenderIdentity(name="A"))
    await fanout.relay_as_user(RelayPayload(content="two"), targets, SenderIdentity(name="A"))

    assert hub.created == 2
    assert len(hub[lfg_url(1)].sent) == 2


@pytest.mark.asyncio
async def test_no_targets_is_a_noop(fanout, hub):
    assert await fanout.relay_as_user(RelayPayload(content="x"), [], SenderIdentity(name="A")) == []
    assert hub.created == 0


@pytest.mark.asyncio
async def test_delete_remote_treats_missing_copies_as_deleted(registry, fanout, hub):
    bind_communities(registry, 3)
    hub[lfg_url(1)].delete_error = not_found()
    hub[lfg_url(2)].delete_error = http_error(500)
    records = [
        MessageRecord(post_id=1, community_id=str(100 + n), channel_id=f"{n}20", message_id=str(n))
        for n in (1, 2, 3)
    ]

    removed = await fanout.delete_remote(records, "lfg")

    assert removed == 2
    assert hub[lfg_url(3)].deleted == [3]


@pytest.mark.asyncio
async def test_edit_remote_skips_unbound_communities(registry, fanout, hub):
    bind_communities(registry, 1)
    records = [
        MessageRecord(post_id=1, community_id="101", channel_id="120", message_id="55"),
        MessageRecord(post_id=1, community_id="999", channel_id="1", message_id="56"),
    ]
    embed = discord.Embed(title="updated")

    edited = await fanout.edit_remote(records, "lfg", embed=embed)

    assert edited == 1
    assert hub[lfg_url(1)].edited == [(55, {"embed": embed})]


@pytest.mark.asyncio
async def test_payload_from_message_notes_stickers():
    message = SimpleNamespace(
        content="gg",
        attachments=[],
        embeds=[],
        stickers=[SimpleNamespace(name="Sol Ring")],
    )

    payload = await RelayPayload.from_message(message)

    assert payload.content == "gg\n[Sticker: Sol Ring]"
    assert not payload.empty
