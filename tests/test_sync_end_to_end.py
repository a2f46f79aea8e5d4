from __future__ import annotations

import asyncio
from datetime import date

import httpx
import pytest
from fastapi import FastAPI

from staffsync.clients.store_client import HttpAssignmentStore, StoreClient
from staffsync.core.config import Settings
from staffsync.core.errors import ConflictError, NotFoundError
from staffsync.models.entities import StatusSource
from staffsync.sync.context import create_sync_context
from staffsync.sync.mutations import LinkState
from staffsync.sync.records import AssignmentDraft, AssignmentPatch
from staffsync.sync.rule_engine import UtilizationSeries


def _http(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test/api/v1")


def test_cache_and_mutations_against_the_store_api(store_app: FastAPI) -> None:
    async def scenario() -> None:
        async with create_sync_context(Settings(), http=_http(store_app)) as context:
            cache = context.assignments

            ticket = await context.mutations.link("anna", "P1", {"allocation_pct": 40, "role": "Backend"})
            assert ticket.state is LinkState.COMMITTED
            [record] = cache.cached_for_person("anna")
            assert record.id == ticket.id
            assert record.allocation_pct == 40

            duplicate = await context.mutations.link("anna", "P1")
            assert duplicate.state is LinkState.DEDUPLICATED

            await context.mutations.update(ticket.id, AssignmentPatch(status="active", probability=None))
            by_project = await cache.get_for_project("P1", force=True)
            assert by_project[0].status.value == "active"
            assert cache.cached_for_person("anna")[0] == by_project[0]

            await context.mutations.unlink(ticket.id)
            assert await cache.refresh_person("anna") == []

            with pytest.raises(NotFoundError):
                await context.mutations.unlink(ticket.id)

    asyncio.run(scenario())


def test_store_conflict_rolls_back_a_link(store_app: FastAPI) -> None:
    async def scenario() -> None:
        async with create_sync_context(Settings(), http=_http(store_app)) as context:
            # Another writer created the pair; this cache has not seen it.
            async with _http(store_app) as http:
                existing = await HttpAssignmentStore(StoreClient(http)).create(
                    AssignmentDraft(person_key="anna", project_key="P1")
                )

            with pytest.raises(ConflictError) as excinfo:
                await context.mutations.link("anna", "P1")
            assert excinfo.value.status_code == 409
            assert context.assignments.cached_for_person("anna") == []

            assert [item.id for item in await context.assignments.refresh_person("anna")] == [existing]

    asyncio.run(scenario())


def test_project_catalog_fields_reach_the_cache(store_app: FastAPI) -> None:
    async def scenario() -> None:
        async with _http(store_app) as http:
            response = await http.put("/projects/P1", json={"name": "Payments", "customer": "Acme"})
            assert response.status_code == 200

        async with create_sync_context(Settings(), http=_http(store_app)) as context:
            await context.mutations.link("anna", "P1")
            [record] = context.assignments.cached_for_project("P1")
            assert record.project_name == "Payments"
            assert record.customer == "Acme"

    asyncio.run(scenario())


def test_rule_flags_persist_through_the_store_api(store_app: FastAPI) -> None:
    series = UtilizationSeries.from_labels(
        "Tom",
        owner="manager",
        forecast={"25/13": 20, "25/14": 15, "25/15": 10},
    )

    async def scenario() -> None:
        async with create_sync_context(Settings(), http=_http(store_app), clock=lambda: date(2025, 3, 19)) as context:
            assert context.action_items.loaded
            await context.rules.on_series_changed([series])
            await context.person_status.set_manual("Tom", "bench", updated_by="lead@test.local")

        async with create_sync_context(Settings(), http=_http(store_app)) as reopened:
            assert reopened.action_items.get("Tom") is True
            assert reopened.action_items.get_source("Tom") is StatusSource.RULE
            assert reopened.person_status.get("Tom") == "bench"
            assert reopened.person_status.entry("Tom").updated_by == "lead@test.local"

    asyncio.run(scenario())
