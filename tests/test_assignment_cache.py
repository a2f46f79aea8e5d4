from __future__ import annotations

import asyncio

import pytest

from staffsync.core.errors import TransportError
from staffsync.sync.assignment_cache import AssignmentCache
from staffsync.sync.records import utcnow

from fakes import FakeAssignmentStore


def _ids(items) -> list[str]:
    return [item.id for item in items or []]


def test_concurrent_reads_share_one_fetch(store: FakeAssignmentStore) -> None:
    record = store.seed("anna", "P1")

    async def scenario() -> None:
        gate = store.gates["list_by_person"] = asyncio.Event()
        cache = AssignmentCache(store)

        first = asyncio.create_task(cache.get_for_person("anna"))
        second = asyncio.create_task(cache.get_for_person("anna"))
        forced = asyncio.create_task(cache.get_for_person("anna", force=True))
        await asyncio.sleep(0)
        assert cache.is_person_loading("anna")
        assert cache.is_loading

        gate.set()
        results = await asyncio.gather(first, second, forced)

        assert store.calls["list_by_person"] == 1
        assert [_ids(result) for result in results] == [[record.id]] * 3
        assert not cache.is_loading

        # Cached now: no further request.
        assert _ids(await cache.get_for_person("anna")) == [record.id]
        assert store.calls["list_by_person"] == 1

    asyncio.run(scenario())


def test_failed_fetch_writes_nothing_and_clears_marker(store: FakeAssignmentStore) -> None:
    store.seed("anna", "P1")
    store.failures["list_by_person"] = TransportError("store unreachable")

    async def scenario() -> None:
        cache = AssignmentCache(store)
        results = await asyncio.gather(
            cache.get_for_person("anna"),
            cache.get_for_person("anna"),
            return_exceptions=True,
        )
        assert all(isinstance(result, TransportError) for result in results)
        assert store.calls["list_by_person"] == 1
        assert cache.cached_for_person("anna") is None
        assert cache.cached_for_project("P1") is None
        assert not cache.is_person_loading("anna")

        del store.failures["list_by_person"]
        assert len(await cache.get_for_person("anna")) == 1
        assert store.calls["list_by_person"] == 2

    asyncio.run(scenario())


def test_empty_key_is_not_fetched(store: FakeAssignmentStore) -> None:
    async def scenario() -> None:
        cache = AssignmentCache(store)
        assert await cache.get_for_person("") == []
        assert await cache.get_for_project("") == []

    asyncio.run(scenario())
    assert store.calls["list_by_person"] == 0
    assert store.calls["list_by_project"] == 0


def test_person_fetch_mirrors_into_project_index(store: FakeAssignmentStore) -> None:
    p1 = store.seed("anna", "P1")
    p2 = store.seed("anna", "P2")
    other = store.seed("tom", "P1")

    async def scenario() -> AssignmentCache:
        cache = AssignmentCache(store)
        await cache.get_for_person("anna")
        return cache

    cache = asyncio.run(scenario())

    assert sorted(_ids(cache.cached_for_person("anna"))) == sorted([p1.id, p2.id])
    assert _ids(cache.cached_for_project("P1")) == [p1.id]
    assert _ids(cache.cached_for_project("P2")) == [p2.id]

    async def load_project() -> None:
        await cache.get_for_project("P1")

    asyncio.run(load_project())
    assert sorted(_ids(cache.cached_for_project("P1"))) == sorted([p1.id, other.id])
    assert _ids(cache.cached_for_person("tom")) == [other.id]
    assert store.calls["list_by_project"] == 1


def test_refresh_drops_records_gone_from_the_store(store: FakeAssignmentStore) -> None:
    gone = store.seed("anna", "P1")
    kept = store.seed("anna", "P2")

    async def scenario() -> AssignmentCache:
        cache = AssignmentCache(store)
        await cache.get_for_person("anna")
        del store.records[gone.id]
        await cache.refresh_person("anna")
        return cache

    cache = asyncio.run(scenario())

    assert _ids(cache.cached_for_person("anna")) == [kept.id]
    assert cache.cached_for_project("P1") == []
    assert _ids(cache.cached_for_project("P2")) == [kept.id]
    assert store.calls["list_by_person"] == 2


def test_patch_keeps_both_indices_identical(store: FakeAssignmentStore) -> None:
    record = store.seed("anna", "P1", allocation_pct=40)

    async def scenario() -> AssignmentCache:
        cache = AssignmentCache(store)
        await cache.get_for_person("anna")
        return cache

    cache = asyncio.run(scenario())
    location = cache.apply_patch(record.id, {"allocation_pct": 70}, updated_at=utcnow())

    assert location.person_keys == ("anna",)
    assert location.project_keys == ("P1",)
    by_person = cache.cached_for_person("anna")[0]
    by_project = cache.cached_for_project("P1")[0]
    assert by_person == by_project
    assert by_person.allocation_pct == 70
    assert by_person.updated_at >= record.updated_at

    assert not cache.apply_patch("unknown", {"allocation_pct": 10}, updated_at=utcnow()).found


def test_upsert_and_remove_touch_both_indices(store: FakeAssignmentStore) -> None:
    record = store.seed("anna", "P1")
    cache = AssignmentCache(store)

    cache.apply_upsert(record)
    assert cache.find(record.id) == record
    assert cache.find_open("anna", "P1") == record
    assert _ids(cache.persons()["anna"]) == [record.id]
    assert _ids(cache.projects()["P1"]) == [record.id]

    location = cache.apply_remove(record.id)
    assert location.found
    assert cache.cached_for_person("anna") == []
    assert cache.cached_for_project("P1") == []
    assert cache.find(record.id) is None
    assert not cache.apply_remove(record.id).found


def test_closed_record_is_not_an_open_link(store: FakeAssignmentStore) -> None:
    cache = AssignmentCache(store)
    cache.apply_upsert(store.seed("anna", "P1", status="closed"))

    assert cache.find_open("anna", "P1") is None


def test_returned_lists_are_copies(store: FakeAssignmentStore) -> None:
    cache = AssignmentCache(store)
    cache.apply_upsert(store.seed("anna", "P1"))

    snapshot = cache.cached_for_person("anna")
    snapshot.clear()

    assert len(cache.cached_for_person("anna")) == 1


@pytest.mark.parametrize("force", [False, True])
def test_project_reads_coalesce(store: FakeAssignmentStore, force: bool) -> None:
    store.seed("anna", "P1")

    async def scenario() -> None:
        cache = AssignmentCache(store)
        await asyncio.gather(*(cache.get_for_project("P1", force=force) for _ in range(5)))

    asyncio.run(scenario())
    assert store.calls["list_by_project"] == 1


def test_probability_only_counts_for_planned_and_on_hold(store: FakeAssignmentStore) -> None:
    planned = store.seed("anna", "P1", status="planned", probability=60)
    on_hold = store.seed("anna", "P2", status="onHold", probability=30)
    active = store.seed("anna", "P3", status="active", probability=60)

    assert planned.effective_probability == 60
    assert on_hold.effective_probability == 30
    assert active.effective_probability is None
    assert not planned.is_provisional
