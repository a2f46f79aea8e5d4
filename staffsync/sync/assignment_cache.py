"""Dual-indexed, read-through cache of assignment records.

The cache keeps one logical record set under two lookup keys: ``by_person``
(person key -> records) and ``by_project`` (project key -> records). A record
known under one key is present, field-identical, under its mirror key in the
other index.

Every write builds new maps and hands both to ``_commit``, which swaps them in
one synchronous step, so no caller can observe one index updated without the
other. Lists are never mutated in place once committed; readers always get
copies.

Concurrent reads for the same key share one in-flight fetch. The marker is
cleared when the fetch settles, whatever the outcome, so a later call issues
a fresh request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from staffsync.sync.protocols import AssignmentStore
from staffsync.sync.records import Assignment

logger = logging.getLogger(__name__)

Index = dict[str, list[Assignment]]


@dataclass(frozen=True, slots=True)
class IndexLocation:
    """Keys under which a record was found when it was patched or removed."""

    person_keys: tuple[str, ...] = ()
    project_keys: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.person_keys or self.project_keys)


def _upsert_into(items: list[Assignment], record: Assignment, *, prepend: bool) -> list[Assignment]:
    for position, existing in enumerate(items):
        if existing.id == record.id:
            return [*items[:position], record, *items[position + 1 :]]
    return [record, *items] if prepend else [*items, record]


def _upsert_mirrored(index: Index, key: str, record: Assignment, *, prepend: bool) -> None:
    index[key] = _upsert_into(index.get(key, []), record, prepend=prepend)


def _map_matching(
    index: Index,
    assignment_id: str,
    transform: Callable[[Assignment], Assignment | None],
) -> tuple[Index, tuple[str, ...]]:
    """Apply ``transform`` to every copy of ``assignment_id``; ``None`` drops it."""
    result: Index = {}
    touched: list[str] = []
    for key, items in index.items():
        if not any(item.id == assignment_id for item in items):
            result[key] = items
            continue
        touched.append(key)
        updated: list[Assignment] = []
        for item in items:
            if item.id != assignment_id:
                updated.append(item)
                continue
            replacement = transform(item)
            if replacement is not None:
                updated.append(replacement)
        result[key] = updated
    return result, tuple(touched)


class AssignmentCache:
    """In-memory mirror of the remote assignment store, indexed by person and by project."""

    def __init__(self, store: AssignmentStore) -> None:
        self._store = store
        self._by_person: Index = {}
        self._by_project: Index = {}
        self._inflight_by_person: dict[str, asyncio.Task[list[Assignment]]] = {}
        self._inflight_by_project: dict[str, asyncio.Task[list[Assignment]]] = {}
        self._loading_persons: set[str] = set()
        self._loading_projects: set[str] = set()

    # ---------- Read views ----------
    def persons(self) -> dict[str, list[Assignment]]:
        return {key: list(items) for key, items in self._by_person.items()}

    def projects(self) -> dict[str, list[Assignment]]:
        return {key: list(items) for key, items in self._by_project.items()}

    def cached_for_person(self, person_key: str) -> list[Assignment] | None:
        items = self._by_person.get(person_key)
        return list(items) if items is not None else None

    def cached_for_project(self, project_key: str) -> list[Assignment] | None:
        items = self._by_project.get(project_key)
        return list(items) if items is not None else None

    @property
    def is_loading(self) -> bool:
        return bool(self._loading_persons or self._loading_projects)

    def is_person_loading(self, person_key: str) -> bool:
        return person_key in self._loading_persons

    def is_project_loading(self, project_key: str) -> bool:
        return project_key in self._loading_projects

    def find(self, assignment_id: str) -> Assignment | None:
        for index in (self._by_person, self._by_project):
            for items in index.values():
                for item in items:
                    if item.id == assignment_id:
                        return item
        return None

    def find_open(self, person_key: str, project_key: str) -> Assignment | None:
        """Cached non-closed link for the pair, if any."""
        candidates = [
            *self._by_person.get(person_key, []),
            *self._by_project.get(project_key, []),
        ]
        for item in candidates:
            if item.person_key == person_key and item.project_key == project_key and item.is_open:
                return item
        return None

    # ---------- Read-through fetches ----------
    async def get_for_person(self, person_key: str, force: bool = False) -> list[Assignment]:
        if not person_key:
            return []
        if not force and person_key in self._by_person:
            return list(self._by_person[person_key])

        task = self._inflight_by_person.get(person_key)
        if task is None:
            self._loading_persons.add(person_key)
            task = asyncio.create_task(self._load_person(person_key))
            self._inflight_by_person[person_key] = task
        else:
            logger.debug("Joining in-flight fetch for person %s", person_key)
        return list(await asyncio.shield(task))

    async def get_for_project(self, project_key: str, force: bool = False) -> list[Assignment]:
        if not project_key:
            return []
        if not force and project_key in self._by_project:
            return list(self._by_project[project_key])

        task = self._inflight_by_project.get(project_key)
        if task is None:
            self._loading_projects.add(project_key)
            task = asyncio.create_task(self._load_project(project_key))
            self._inflight_by_project[project_key] = task
        else:
            logger.debug("Joining in-flight fetch for project %s", project_key)
        return list(await asyncio.shield(task))

    async def refresh_person(self, person_key: str) -> list[Assignment]:
        return await self.get_for_person(person_key, force=True)

    async def refresh_project(self, project_key: str) -> list[Assignment]:
        return await self.get_for_project(project_key, force=True)

    async def _load_person(self, person_key: str) -> list[Assignment]:
        try:
            records = await self._store.list_by_person(person_key)
            self._replace_person(person_key, records)
            logger.debug("Loaded %d assignments for person %s", len(records), person_key)
            return records
        except Exception:
            logger.debug("Fetch for person %s failed", person_key, exc_info=True)
            raise
        finally:
            self._inflight_by_person.pop(person_key, None)
            self._loading_persons.discard(person_key)

    async def _load_project(self, project_key: str) -> list[Assignment]:
        try:
            records = await self._store.list_by_project(project_key)
            self._replace_project(project_key, records)
            logger.debug("Loaded %d assignments for project %s", len(records), project_key)
            return records
        except Exception:
            logger.debug("Fetch for project %s failed", project_key, exc_info=True)
            raise
        finally:
            self._inflight_by_project.pop(project_key, None)
            self._loading_projects.discard(project_key)

    def _replace_person(self, person_key: str, records: Iterable[Assignment]) -> None:
        records = list(records)
        fetched_ids = {record.id for record in records}
        by_person = dict(self._by_person)
        by_person[person_key] = records
        by_project = {
            key: [item for item in items if item.person_key != person_key or item.id in fetched_ids]
            for key, items in self._by_project.items()
        }
        for record in records:
            _upsert_mirrored(by_project, record.project_key, record, prepend=False)
        self._commit(by_person, by_project)

    def _replace_project(self, project_key: str, records: Iterable[Assignment]) -> None:
        records = list(records)
        fetched_ids = {record.id for record in records}
        by_project = dict(self._by_project)
        by_project[project_key] = records
        by_person = {
            key: [item for item in items if item.project_key != project_key or item.id in fetched_ids]
            for key, items in self._by_person.items()
        }
        for record in records:
            _upsert_mirrored(by_person, record.person_key, record, prepend=False)
        self._commit(by_person, by_project)

    # ---------- Writers (both indices, always) ----------
    def apply_upsert(self, record: Assignment) -> None:
        """Insert or replace ``record`` by id under its person and project keys."""
        by_person = dict(self._by_person)
        by_project = dict(self._by_project)
        _upsert_mirrored(by_person, record.person_key, record, prepend=True)
        _upsert_mirrored(by_project, record.project_key, record, prepend=True)
        self._commit(by_person, by_project)

    def apply_patch(
        self,
        assignment_id: str,
        changes: dict[str, Any],
        *,
        updated_at: datetime,
    ) -> IndexLocation:
        current = self.find(assignment_id)
        if current is None:
            return IndexLocation()
        # One patched copy shared by both indices keeps them field-identical.
        patched = current.with_changes(changes, updated_at=updated_at)
        by_person, person_keys = _map_matching(self._by_person, assignment_id, lambda _: patched)
        by_project, project_keys = _map_matching(self._by_project, assignment_id, lambda _: patched)
        self._commit(by_person, by_project)
        return IndexLocation(person_keys=person_keys, project_keys=project_keys)

    def apply_remove(self, assignment_id: str) -> IndexLocation:
        """Drop every copy of ``assignment_id`` from every list in both indices."""
        by_person, person_keys = _map_matching(self._by_person, assignment_id, lambda _: None)
        by_project, project_keys = _map_matching(self._by_project, assignment_id, lambda _: None)
        if person_keys or project_keys:
            self._commit(by_person, by_project)
        return IndexLocation(person_keys=person_keys, project_keys=project_keys)

    def _commit(self, by_person: Index, by_project: Index) -> None:
        self._by_person, self._by_project = by_person, by_project
