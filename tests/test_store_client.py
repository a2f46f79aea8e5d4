from __future__ import annotations

import asyncio
import json
from datetime import date

import httpx
import pytest

from staffsync.clients.store_client import HttpAssignmentStore, HttpStatusPersistence, StoreClient
from staffsync.core.errors import ConflictError, NotFoundError, StoreError, TransportError
from staffsync.models.entities import StatusSource
from staffsync.sync.records import AssignmentDraft
from staffsync.sync.rule_engine import ActionItemRuleEngine, RuleRunner, UtilizationSeries
from staffsync.sync.status_resolution import ACTION_ITEM_ATTRIBUTE, StatusResolutionStore


def _client(handler) -> StoreClient:
    return StoreClient(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://store/api/v1"))


@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [
        (404, NotFoundError),
        (409, ConflictError),
        (422, ConflictError),
        (503, TransportError),
        (400, StoreError),
    ],
)
def test_status_codes_map_to_store_errors(status_code: int, error_type: type[StoreError]) -> None:
    client = _client(lambda request: httpx.Response(status_code, json={"detail": "rejected"}))

    async def scenario() -> None:
        with pytest.raises(error_type) as excinfo:
            await HttpAssignmentStore(client).remove("srv-1")
        assert excinfo.value.status_code == status_code
        assert str(excinfo.value) == "rejected"
        await client.aclose()

    asyncio.run(scenario())


def test_connection_failure_is_a_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    async def scenario() -> None:
        with pytest.raises(TransportError) as excinfo:
            await HttpAssignmentStore(client).list_by_person("anna")
        assert excinfo.value.status_code is None
        await client.aclose()

    asyncio.run(scenario())


def test_keys_are_escaped_in_paths() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path.decode())
        if request.method == "GET":
            return httpx.Response(200, json={"items": []})
        return httpx.Response(204)

    client = _client(handler)

    async def scenario() -> None:
        assert await HttpAssignmentStore(client).list_by_person("anna/smith") == []
        await HttpStatusPersistence(client, "action_item").delete("a b")
        await client.aclose()

    asyncio.run(scenario())
    assert seen == [
        "/api/v1/persons/anna%2Fsmith/assignments",
        "/api/v1/status-entries/action_item/a%20b",
    ]


def test_status_persistence_payloads() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(
                200,
                json={"items": [{"entity_key": "anna", "value": True, "source": "rule", "updated_by": None}]},
            )
        return httpx.Response(200, json={})

    client = _client(handler)
    persistence = HttpStatusPersistence(client, "action_item")

    async def scenario() -> None:
        [row] = await persistence.load_all()
        assert row.entity_key == "anna"
        assert row.source is StatusSource.RULE
        await persistence.upsert("anna", False, StatusSource.MANUAL, "lead@test.local")
        await client.aclose()

    asyncio.run(scenario())
    assert requests[-1].method == "PUT"
    assert json.loads(requests[-1].content) == {"value": False, "source": "manual", "updated_by": "lead@test.local"}


@pytest.mark.parametrize(
    "body",
    [
        b"{}",
        b'{"items": [{"entity_key": "anna"}]}',
        b'{"items": [{"entity_key": "anna", "value": true, "source": "guess"}]}',
        b"<html>maintenance</html>",
    ],
)
def test_malformed_status_list_is_a_store_error(body: bytes) -> None:
    client = _client(lambda request: httpx.Response(200, content=body))

    async def scenario() -> None:
        with pytest.raises(StoreError, match="malformed body"):
            await HttpStatusPersistence(client, "action_item").load_all()
        await client.aclose()

    asyncio.run(scenario())


@pytest.mark.parametrize("body", [b'{"items": [{"id": "srv-1"}]}', b'{"items": null}', b"not json"])
def test_malformed_assignment_list_is_a_store_error(body: bytes) -> None:
    client = _client(lambda request: httpx.Response(200, content=body))

    async def scenario() -> None:
        with pytest.raises(StoreError, match="malformed body"):
            await HttpAssignmentStore(client).list_by_project("P1")
        await client.aclose()

    asyncio.run(scenario())


def test_create_without_id_is_a_store_error() -> None:
    client = _client(lambda request: httpx.Response(201, json={"status": "planned"}))

    async def scenario() -> None:
        with pytest.raises(StoreError, match="POST /assignments"):
            await HttpAssignmentStore(client).create(AssignmentDraft(person_key="anna", project_key="P1"))
        await client.aclose()

    asyncio.run(scenario())


def test_rule_cycle_is_skipped_on_malformed_status_list() -> None:
    client = _client(lambda request: httpx.Response(200, json={"entries": []}))
    store = StatusResolutionStore(ACTION_ITEM_ATTRIBUTE, HttpStatusPersistence(client, ACTION_ITEM_ATTRIBUTE))
    runner = RuleRunner(ActionItemRuleEngine(clock=lambda: date(2025, 3, 19)), store)
    series = UtilizationSeries.from_labels("anna", owner="lead", forecast={"25/13": 0, "25/14": 0, "25/15": 0})

    async def scenario() -> None:
        assert await runner.on_series_changed([series]) is None
        await client.aclose()

    asyncio.run(scenario())
    assert not store.loaded
