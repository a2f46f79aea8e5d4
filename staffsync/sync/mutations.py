"""Optimistic link / update / unlink operations layered on the assignment cache."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from staffsync.sync.assignment_cache import AssignmentCache, IndexLocation
from staffsync.sync.protocols import AssignmentStore
from staffsync.sync.records import Assignment, AssignmentDraft, AssignmentPatch, utcnow

logger = logging.getLogger(__name__)


class LinkState(str, enum.Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    DEDUPLICATED = "deduplicated"


@dataclass(slots=True)
class LinkTicket:
    """Observable state of one ``link`` call.

    ``id`` is the provisional id while the create is pending and the
    server-assigned id once committed (or the existing id when deduplicated).
    """

    person_key: str
    project_key: str
    id: str
    state: LinkState
    temp_id: str | None = None
    error: Exception | None = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def settled(self) -> bool:
        return self.state is not LinkState.PENDING

    async def wait(self) -> LinkTicket:
        """Block until the create this ticket tracks has committed or rolled back."""
        if not self.settled:
            await self._done.wait()
        return self

    def _settle(self, state: LinkState, *, assignment_id: str | None = None, error: Exception | None = None) -> None:
        self.state = state
        if assignment_id is not None:
            self.id = assignment_id
        self.error = error
        self._done.set()


class AssignmentMutations:
    """Mutation pipeline: optimistic local apply, remote call, reconcile."""

    def __init__(
        self,
        cache: AssignmentCache,
        store: AssignmentStore,
        *,
        refresh_on_unlink_failure: bool = True,
    ) -> None:
        self._cache = cache
        self._store = store
        self._refresh_on_unlink_failure = refresh_on_unlink_failure
        self._pending: dict[str, LinkTicket] = {}

    def pending_links(self) -> list[LinkTicket]:
        return list(self._pending.values())

    async def link(
        self,
        person_key: str,
        project_key: str,
        meta: dict[str, Any] | None = None,
    ) -> LinkTicket:
        """Create the link unless an open one is cached.

        A duplicate of a link whose create is still in flight waits for that
        create and reports its server id, or raises its error if it rolled back.
        """
        existing = self._cache.find_open(person_key, project_key)
        if existing is not None:
            existing_id = existing.id
            pending = self._pending.get(existing_id)
            if pending is not None:
                logger.debug("Link %s -> %s waits for pending create %s", person_key, project_key, existing_id)
                await pending.wait()
                if pending.error is not None:
                    raise pending.error
                existing_id = pending.id
            else:
                logger.debug("Link %s -> %s already cached as %s", person_key, project_key, existing_id)
            return LinkTicket(
                person_key=person_key,
                project_key=project_key,
                id=existing_id,
                state=LinkState.DEDUPLICATED,
            )

        draft = AssignmentDraft(person_key=person_key, project_key=project_key, **(meta or {}))
        provisional = Assignment.provisional(draft)
        ticket = LinkTicket(
            person_key=person_key,
            project_key=project_key,
            id=provisional.id,
            state=LinkState.PENDING,
            temp_id=provisional.id,
        )
        self._pending[provisional.id] = ticket
        self._cache.apply_upsert(provisional)

        try:
            assignment_id = await self._store.create(draft)
        except Exception as exc:
            self._cache.apply_remove(provisional.id)
            ticket._settle(LinkState.ROLLED_BACK, error=exc)
            logger.warning("Link %s -> %s rolled back: %s", person_key, project_key, exc)
            raise
        finally:
            self._pending.pop(provisional.id, None)

        # Confirmed record goes in before the provisional one leaves.
        self._cache.apply_upsert(provisional.model_copy(update={"id": assignment_id}))
        self._cache.apply_remove(provisional.id)
        ticket._settle(LinkState.COMMITTED, assignment_id=assignment_id)
        logger.info("Linked %s -> %s as %s", person_key, project_key, assignment_id)

        try:
            await self._cache.refresh_person(person_key)
        except Exception:
            logger.warning("Refresh of %s after link %s failed", person_key, assignment_id, exc_info=True)
        return ticket

    async def update(self, assignment_id: str, patch: AssignmentPatch) -> None:
        location = self._cache.apply_patch(assignment_id, patch.changes(), updated_at=utcnow())
        try:
            await self._store.update(assignment_id, patch)
        except Exception as exc:
            logger.warning("Update of %s failed, refreshing from store: %s", assignment_id, exc)
            await self._refresh(location)
            raise

    async def unlink(self, assignment_id: str) -> None:
        location = self._cache.apply_remove(assignment_id)
        try:
            await self._store.remove(assignment_id)
        except Exception as exc:
            logger.warning("Unlink of %s failed: %s", assignment_id, exc)
            if self._refresh_on_unlink_failure:
                await self._refresh(location)
            raise
        logger.info("Unlinked %s", assignment_id)

    async def _refresh(self, location: IndexLocation) -> None:
        """Re-derive truth for the keys a failed mutation touched.

        Refresh failures are logged; the caller re-raises the mutation error.
        """
        for person_key in location.person_keys:
            try:
                await self._cache.refresh_person(person_key)
            except Exception:
                logger.warning("Refresh of person %s failed", person_key, exc_info=True)
        for project_key in location.project_keys:
            try:
                await self._cache.refresh_project(project_key)
            except Exception:
                logger.warning("Refresh of project %s failed", project_key, exc_info=True)
