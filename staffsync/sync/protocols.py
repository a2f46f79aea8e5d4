"""Boundaries consumed by the sync layer: the remote assignment store and status persistence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from staffsync.models.entities import StatusSource
from staffsync.sync.records import Assignment, AssignmentDraft, AssignmentPatch


class AssignmentStore(Protocol):
    """Remote CRUD over assignment records, queryable by person or by project.

    Every method raises a ``staffsync.core.errors.StoreError`` subclass on failure.
    """

    async def create(self, draft: AssignmentDraft) -> str: ...

    async def update(self, assignment_id: str, patch: AssignmentPatch) -> None: ...

    async def remove(self, assignment_id: str) -> None: ...

    async def list_by_person(self, person_key: str) -> list[Assignment]: ...

    async def list_by_project(self, project_key: str) -> list[Assignment]: ...


@dataclass(frozen=True, slots=True)
class PersistedStatus:
    entity_key: str
    value: Any
    source: StatusSource
    updated_by: str | None = None


class StatusPersistence(Protocol):
    """Persistence for one derived attribute (e.g. the action-item flag)."""

    async def load_all(self) -> list[PersistedStatus]: ...

    async def upsert(
        self,
        entity_key: str,
        value: Any,
        source: StatusSource,
        updated_by: str | None = None,
    ) -> None: ...

    async def delete(self, entity_key: str) -> None: ...
