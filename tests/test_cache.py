import pytest

from fakes import make_item
from tubeshelf.sync.cache import PlaylistCache
from tubeshelf.sync.models import PlaylistSnapshot, SyncState


def _snapshot(playlist_id="A", *item_ids, state=SyncState.CLEAN):
    return PlaylistSnapshot(playlist_id).with_items(
        [make_item(i) for i in item_ids], state
    )


def test_replace_stores_clean_snapshot():
    cache = PlaylistCache()
    cache.replace("A", _snapshot("A", "x", state=SyncState.STALE))

    assert cache.get("A").sync_state == SyncState.CLEAN
    assert "A" in cache
    assert len(cache) == 1
    assert cache.playlist_ids() == ["A"]
    assert cache.get("B") is None


def test_apply_returns_previous_and_swaps():
    cache = PlaylistCache()
    first = _snapshot("A", "x", "y")
    cache.replace("A", first)

    previous = cache.apply("A", lambda s: s.with_items(s.items[1:]))

    assert previous == first
    assert [i.item_id for i in cache.get("A").items] == ["y"]
    assert cache.get("A").items[0].position == 0


def test_failed_transform_stores_nothing_and_emits_nothing():
    cache = PlaylistCache()
    cache.replace("A", _snapshot("A", "x"))
    before = cache.get("A")
    events = []
    cache.subscribe(lambda pid, snap: events.append(pid))

    def boom(_):
        raise ValueError("bad transform")

    with pytest.raises(ValueError):
        cache.apply("A", boom)

    assert cache.get("A") is before
    assert events == []


def test_subscribers_receive_changes_for_their_playlist():
    cache = PlaylistCache()
    all_events, a_events = [], []
    cache.subscribe(lambda pid, snap: all_events.append(pid))
    unsubscribe = cache.subscribe(lambda pid, snap: a_events.append(snap), "A")

    cache.replace("A", _snapshot("A", "x"))
    cache.replace("B", _snapshot("B", "y"))
    cache.mark("A", SyncState.STALE)
    cache.discard("A")
    unsubscribe()
    cache.replace("A", _snapshot("A", "z"))

    assert all_events == ["A", "B", "A", "A", "A"]
    assert [s.sync_state if s else None for s in a_events] == [
        SyncState.CLEAN,
        SyncState.STALE,
        None,
    ]


def test_subscriber_errors_do_not_reach_the_writer():
    cache = PlaylistCache()
    seen = []

    def broken(pid, snap):
        raise RuntimeError("subscriber bug")

    cache.subscribe(broken)
    cache.subscribe(lambda pid, snap: seen.append(pid))

    cache.replace("A", _snapshot("A", "x"))

    assert cache.get("A") is not None
    assert seen == ["A"]


def test_restore_none_discards():
    cache = PlaylistCache()
    cache.replace("A", _snapshot("A", "x"))

    cache.restore("A", None)

    assert "A" not in cache


def test_mark_is_a_no_op_when_state_unchanged():
    cache = PlaylistCache()
    cache.replace("A", _snapshot("A", "x"))
    events = []
    cache.subscribe(lambda pid, snap: events.append(pid))

    cache.mark("A", SyncState.CLEAN)
    cache.mark("missing", SyncState.STALE)

    assert events == []
    assert "missing" not in cache
