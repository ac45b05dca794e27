import threading
import time

import pytest

from services.lobby.models import (
    STATE_CANCELLED,
    STATE_EXPIRED,
    STATE_FULL,
    STATE_OPEN,
    LobbyReason,
)
from services.lobby.storage import LobbyStore


def new_post(store, *, expires_in=3600, now=None):
    return store.create_post(
        creator_id="1",
        creator_name="Host",
        category="casual",
        note="bring snacks",
        expires_at=int(time.time()) + expires_in,
        now=now,
    )


def test_creator_is_seated(store):
    post = new_post(store)

    assert post.seats == 1
    assert post.state == STATE_OPEN
    assert [p.user_id for p in store.participants(post.post_id)] == ["1"]


def test_join_until_full(store):
    post = new_post(store)

    results = [store.add_participant(post.post_id, str(uid), f"p{uid}") for uid in (2, 3, 4)]

    assert [r.seats for r in results] == [2, 3, 4]
    assert [r.filled for r in results] == [False, False, True]
    assert store.get_post(post.post_id).state == STATE_FULL

    extra = store.add_participant(post.post_id, "5", "late")
    assert not extra
    assert extra.reason is LobbyReason.LOBBY_FULL
    assert store.seat_count(post.post_id) == 4


def test_double_join_is_rejected(store):
    post = new_post(store)
    store.add_participant(post.post_id, "2", "p2")

    again = store.add_participant(post.post_id, "2", "p2")

    assert again.reason is LobbyReason.ALREADY_JOINED
    assert store.seat_count(post.post_id) == 2


def test_concurrent_joins_never_overfill(store):
    post = new_post(store)
    results = []
    barrier = threading.Barrier(10)

    def join(uid):
        barrier.wait()
        results.append(store.add_participant(post.post_id, str(uid), f"p{uid}"))

    threads = [threading.Thread(target=join, args=(uid,)) for uid in range(100, 110)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    accepted = [r for r in results if r]
    rejected = [r for r in results if not r]
    assert len(accepted) == 3
    assert all(r.reason is LobbyReason.LOBBY_FULL for r in rejected)
    assert store.seat_count(post.post_id) == 4
    assert sum(1 for r in accepted if r.filled) == 1


def test_leave_and_leave_again(store):
    post = new_post(store)
    store.add_participant(post.post_id, "2", "p2")

    left = store.remove_participant(post.post_id, "2")
    again = store.remove_participant(post.post_id, "2")

    assert left and left.seats == 1
    assert again.reason is LobbyReason.NOT_IN_GAME
    assert store.seat_count(post.post_id) == 1


def test_leave_is_locked_once_full(store):
    post = new_post(store)
    for uid in (2, 3, 4):
        store.add_participant(post.post_id, str(uid), f"p{uid}")

    result = store.remove_participant(post.post_id, "3")

    assert result.reason is LobbyReason.LOBBY_LOCKED
    assert store.seat_count(post.post_id) == 4


def test_close_post_is_claimed_once(store):
    post = new_post(store)

    assert store.close_post(post.post_id, STATE_CANCELLED, reason="cancelled") is True
    assert store.close_post(post.post_id, STATE_EXPIRED) is False

    assert store.get_post(post.post_id) is None
    closed = store.get_post(post.post_id, include_terminal=True)
    assert closed.terminal
    assert closed.state == STATE_CANCELLED
    assert closed.closed_reason == "cancelled"


def test_close_post_rejects_live_states(store):
    post = new_post(store)
    with pytest.raises(ValueError):
        store.close_post(post.post_id, STATE_OPEN)


def test_terminal_posts_reject_joins(store):
    post = new_post(store)
    store.close_post(post.post_id, STATE_EXPIRED)

    assert store.add_participant(post.post_id, "2", "p2").reason is LobbyReason.POST_NOT_FOUND
    assert store.remove_participant(post.post_id, "1").reason is LobbyReason.POST_NOT_FOUND


def test_expired_posts(store):
    stale = new_post(store, expires_in=-10)
    fresh = new_post(store, expires_in=3600)
    gone = new_post(store, expires_in=-10)
    store.close_post(gone.post_id, STATE_EXPIRED)

    expired = store.expired_posts()

    assert [p.post_id for p in expired] == [stale.post_id]
    assert fresh.post_id in [p.post_id for p in store.live_posts()]


def test_state_persists_across_instances(db_path):
    first = LobbyStore(db_path)
    post = new_post(first)
    first.add_participant(post.post_id, "2", "p2")

    second = LobbyStore(db_path)

    assert second.get_post(post.post_id).seats == 2
    assert [p.username for p in second.participants(post.post_id)] == ["Host", "p2"]
