import pytest

from services.bridge.registry import ChannelBinding, CommunityBinding, DestinationRegistry
from tests.conftest import bind_communities, webhook_url


def test_resolve_targets_in_binding_order(registry):
    bind_communities(registry, 3)

    targets = registry.resolve_targets("lfg")

    assert [t.community_id for t in targets] == ["101", "102", "103"]
    assert all(t.webhook_url.startswith("https://") for t in targets)


def test_resolve_targets_excludes_source_and_unusable(registry):
    bind_communities(registry, 3)
    registry.set_binding(
        CommunityBinding(
            community_id="200",
            name="Half bound",
            channels={"lfg": ChannelBinding(channel_id="201", webhook_url=None)},
        )
    )

    targets = registry.resolve_targets("lfg", exclude=(102,))

    assert [t.community_id for t in targets] == ["101", "103"]


def test_resolve_targets_unknown_purpose_is_empty(registry):
    bind_communities(registry, 2)
    assert registry.resolve_targets("memes") == []


def test_identify_channel(registry):
    bind_communities(registry, 1)

    assert registry.identify_channel(101, 110) == "news"
    assert registry.identify_channel("101", "120") == "lfg"
    assert registry.identify_channel(101, 999) is None
    assert registry.identify_channel(555, 110) is None


def test_bindings_persist_across_instances(tmp_path):
    path = tmp_path / "bridge.json"
    first = DestinationRegistry(path)
    bind_communities(first, 2)
    first.set_filter_links(True)

    second = DestinationRegistry(path)

    assert len(second) == 2
    assert second.binding(102).name == "Server 2"
    assert second.filter_links is True
    assert [t.community_id for t in second.resolve_targets("news")] == ["101", "102"]


def test_update_endpoint(registry):
    bind_communities(registry, 1)
    new_url = webhook_url(77)

    assert registry.update_endpoint(101, "lfg", new_url) is True
    assert registry.endpoint_for(101, "lfg") == new_url
    assert registry.update_endpoint(101, "lfg", new_url) is False
    assert registry.update_endpoint(999, "lfg", new_url) is False


def test_remove_binding(registry):
    bind_communities(registry, 2)

    assert registry.remove_binding(101) is True
    assert registry.remove_binding(101) is False
    assert [t.community_id for t in registry.resolve_targets("lfg")] == ["102"]


def test_lfg_expiry_bounds(registry):
    registry.set_lfg_expiry_minutes(5)
    registry.set_lfg_expiry_minutes(1440)
    assert registry.lfg_expiry_minutes == 1440

    with pytest.raises(ValueError):
        registry.set_lfg_expiry_minutes(4)
    with pytest.raises(ValueError):
        registry.set_lfg_expiry_minutes(1441)
    assert registry.lfg_expiry_minutes == 1440
