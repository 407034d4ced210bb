import asyncio
from dataclasses import replace

import pytest

from fakes import FakeRemote, FakeSession, ids, make_engine, make_item
from tubeshelf.sync import MutationEngine, PlaylistCache
from tubeshelf.sync.errors import ApiError, AuthExpiredError
from tubeshelf.sync.models import SyncState


def test_engine_requires_session_or_policy():
    with pytest.raises(ValueError):
        MutationEngine(FakeRemote(), PlaylistCache())


def test_load_all_commits_clean_snapshot_with_snippet():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.seed("A", "x", "y", "z")
        progress = []
        snapshot = await engine.load_all("A", on_progress=progress.append)
        return snapshot, cache, progress

    snapshot, cache, progress = asyncio.run(scenario())

    assert ids(snapshot) == ["x", "y", "z"]
    assert [i.position for i in snapshot.items] == [0, 1, 2]
    assert snapshot.sync_state == SyncState.CLEAN
    assert snapshot.snippet.title == "Playlist A"
    assert cache.get("A") == snapshot
    assert progress[-1].total_items == 3


def test_reload_marks_reconciling_then_clean():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.seed("A", "x")
        await engine.load_all("A")

        remote.hold["list_page"] = asyncio.Event()
        task = asyncio.create_task(engine.load_all("A"))
        await asyncio.sleep(0.01)
        during = cache.get("A").sync_state
        remote.hold["list_page"].set()
        await task
        return during, cache.get("A").sync_state

    during, after = asyncio.run(scenario())

    assert during == SyncState.RECONCILING
    assert after == SyncState.CLEAN


def test_failed_reload_restores_previous_snapshot():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.seed("A", "x", "y")
        before = await engine.load_all("A")
        remote.fail("list_page", ApiError(500))
        with pytest.raises(ApiError):
            await engine.load_all("A")
        return before, cache.get("A")

    before, after = asyncio.run(scenario())

    assert after == before


def test_failed_first_load_leaves_nothing_cached():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.fail("list_page", ApiError(404))
        with pytest.raises(ApiError):
            await engine.load_all("missing")
        return cache

    assert "missing" not in asyncio.run(scenario())


def test_snippet_failure_is_not_fatal():
    async def scenario():
        engine, remote, _, _ = make_engine()
        remote.seed("A", "x")
        remote.fail("fetch_snippet", ApiError(500))
        return await engine.load_all("A")

    snapshot = asyncio.run(scenario())

    assert snapshot.snippet is None
    assert ids(snapshot) == ["x"]


def test_expired_session_aborts_load():
    async def scenario():
        engine, remote, _, cache = make_engine(session=FakeSession(token=None, refreshed=None))
        remote.seed("A", "x")
        with pytest.raises(AuthExpiredError):
            await engine.load_all("A")
        return cache, remote

    cache, remote = asyncio.run(scenario())

    assert "A" not in cache
    assert remote.count("list_page") == 0


def test_superseded_open_is_discarded():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.seed("A", "a1")
        remote.seed("B", "b1")
        remote.hold["list_page"] = asyncio.Event()

        first = asyncio.create_task(engine.open_playlist("A"))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(engine.open_playlist("B"))
        await asyncio.sleep(0.01)
        remote.hold["list_page"].set()

        return await first, await second, cache, engine.selected_playlist_id

    first, second, cache, selected = asyncio.run(scenario())

    assert first is None
    assert "A" not in cache
    assert ids(second) == ["b1"]
    assert selected == "B"


def test_mutation_waits_for_running_aggregation():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.seed("A", "x", "y")
        await engine.load_all("A")

        remote.hold["list_page"] = asyncio.Event()
        reload = asyncio.create_task(engine.load_all("A"))
        await asyncio.sleep(0.01)
        delete = asyncio.create_task(engine.delete("A", "y"))
        await asyncio.sleep(0.01)
        deletes_before_release = remote.count("delete")

        # Server changed while the reload was in flight.
        remote.playlists["A"].append(make_item("w"))
        remote.hold["list_page"].set()
        await asyncio.gather(reload, delete)
        return deletes_before_release, cache.get("A")

    deletes_before_release, snapshot = asyncio.run(scenario())

    assert deletes_before_release == 0
    assert ids(snapshot) == ["x", "w"]
    assert [i.position for i in snapshot.items] == [0, 1]


def test_refresh_metadata_clears_item_count_flag():
    async def scenario():
        engine, remote, _, cache = make_engine()
        remote.seed("A", "x", "y")
        await engine.load_all("A")
        cache.apply("A", lambda s: replace(s, item_count_stale=True))
        remote.playlists["A"].pop()
        snippet = await engine.refresh_metadata("A")
        return snippet, cache.get("A")

    snippet, snapshot = asyncio.run(scenario())

    assert snippet.item_count == 1
    assert snapshot.snippet.item_count == 1
    assert snapshot.item_count_stale is False
