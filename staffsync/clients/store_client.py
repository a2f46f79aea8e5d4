"""HTTP client for the assignment store API.

``StoreClient`` owns the ``httpx.AsyncClient`` and maps every failure onto the
``StoreError`` taxonomy; the two adapters on top implement the boundaries the
sync layer consumes. Timeouts are the httpx client's concern.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from urllib.parse import quote

import httpx

from staffsync.core.config import Settings
from staffsync.core.errors import ConflictError, NotFoundError, StoreError, TransportError
from staffsync.models.entities import StatusSource
from staffsync.sync.protocols import PersistedStatus
from staffsync.sync.records import Assignment, AssignmentDraft, AssignmentPatch

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


@contextmanager
def _decoding(method: str, path: str) -> Iterator[None]:
    """Report a response body of the wrong shape as a ``StoreError``."""
    try:
        yield
    except (KeyError, TypeError, ValueError) as exc:
        raise StoreError(f"{method} {path} returned a malformed body: {exc}") from exc


def _detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return str(payload)


class StoreClient:
    """Thin request wrapper with error mapping."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    @classmethod
    def from_settings(cls, settings: Settings) -> StoreClient:
        return cls(
            httpx.AsyncClient(
                base_url=settings.store_base_url,
                timeout=settings.store_timeout_seconds,
            )
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.is_success:
            return response

        detail = _detail(response)
        code = response.status_code
        logger.debug("%s %s -> %d %s", method, path, code, detail)
        if code == 404:
            raise NotFoundError(detail, status_code=code)
        if code in (409, 422):
            raise ConflictError(detail, status_code=code)
        if code >= 500:
            raise TransportError(detail, status_code=code)
        raise StoreError(detail, status_code=code)


class HttpAssignmentStore:
    """Remote assignment store backed by the store API."""

    def __init__(self, client: StoreClient) -> None:
        self._client = client

    async def create(self, draft: AssignmentDraft) -> str:
        response = await self._client.request("POST", "/assignments", json=draft.to_payload())
        with _decoding("POST", "/assignments"):
            return str(response.json()["id"])

    async def update(self, assignment_id: str, patch: AssignmentPatch) -> None:
        await self._client.request("PATCH", f"/assignments/{_segment(assignment_id)}", json=patch.to_payload())

    async def remove(self, assignment_id: str) -> None:
        await self._client.request("DELETE", f"/assignments/{_segment(assignment_id)}")

    async def list_by_person(self, person_key: str) -> list[Assignment]:
        return await self._list(f"/persons/{_segment(person_key)}/assignments")

    async def list_by_project(self, project_key: str) -> list[Assignment]:
        return await self._list(f"/projects/{_segment(project_key)}/assignments")

    async def _list(self, path: str) -> list[Assignment]:
        response = await self._client.request("GET", path)
        # pydantic's ValidationError is a ValueError.
        with _decoding("GET", path):
            return [Assignment.model_validate(item) for item in response.json()["items"]]


class HttpStatusPersistence:
    """Status entry persistence for one attribute, backed by the store API."""

    def __init__(self, client: StoreClient, attribute: str) -> None:
        self._client = client
        self.attribute = attribute

    async def load_all(self) -> list[PersistedStatus]:
        path = f"/status-entries/{_segment(self.attribute)}"
        response = await self._client.request("GET", path)
        with _decoding("GET", path):
            return [
                PersistedStatus(
                    entity_key=item["entity_key"],
                    value=item["value"],
                    source=StatusSource(item["source"]),
                    updated_by=item.get("updated_by"),
                )
                for item in response.json()["items"]
            ]

    async def upsert(
        self,
        entity_key: str,
        value: Any,
        source: StatusSource,
        updated_by: str | None = None,
    ) -> None:
        await self._client.request(
            "PUT",
            f"/status-entries/{_segment(self.attribute)}/{_segment(entity_key)}",
            json={"value": value, "source": source.value, "updated_by": updated_by},
        )

    async def delete(self, entity_key: str) -> None:
        await self._client.request(
            "DELETE",
            f"/status-entries/{_segment(self.attribute)}/{_segment(entity_key)}",
        )
