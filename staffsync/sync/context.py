"""Session-scoped ownership of the sync layer's stores.

One ``SyncContext`` is built per application session and handed to whatever
needs the caches; nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date

import httpx

from staffsync.clients.store_client import HttpAssignmentStore, HttpStatusPersistence, StoreClient
from staffsync.core.config import Settings, get_settings
from staffsync.sync.assignment_cache import AssignmentCache
from staffsync.sync.mutations import AssignmentMutations
from staffsync.sync.rule_engine import ActionItemRuleEngine, RuleRunner
from staffsync.sync.status_resolution import (
    ACTION_ITEM_ATTRIBUTE,
    PERSON_STATUS_ATTRIBUTE,
    StatusResolutionStore,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncContext:
    settings: Settings
    assignments: AssignmentCache
    mutations: AssignmentMutations
    action_items: StatusResolutionStore
    person_status: StatusResolutionStore
    rules: RuleRunner


def build_sync_context(
    client: StoreClient,
    settings: Settings,
    *,
    clock: Callable[[], date] = date.today,
) -> SyncContext:
    store = HttpAssignmentStore(client)
    cache = AssignmentCache(store)
    action_items = StatusResolutionStore(
        ACTION_ITEM_ATTRIBUTE,
        HttpStatusPersistence(client, ACTION_ITEM_ATTRIBUTE),
    )
    return SyncContext(
        settings=settings,
        assignments=cache,
        mutations=AssignmentMutations(
            cache,
            store,
            refresh_on_unlink_failure=settings.refresh_on_unlink_failure,
        ),
        action_items=action_items,
        person_status=StatusResolutionStore(
            PERSON_STATUS_ATTRIBUTE,
            HttpStatusPersistence(client, PERSON_STATUS_ATTRIBUTE),
        ),
        rules=RuleRunner(ActionItemRuleEngine.from_settings(settings, clock=clock), action_items),
    )


@asynccontextmanager
async def create_sync_context(
    settings: Settings | None = None,
    *,
    http: httpx.AsyncClient | None = None,
    clock: Callable[[], date] = date.today,
) -> AsyncIterator[SyncContext]:
    """Open a store client, seed the status stores and yield a ready context.

    A failed seed is logged and left to the next rule cycle to retry.
    """
    settings = settings or get_settings()
    client = StoreClient(http) if http is not None else StoreClient.from_settings(settings)
    context = build_sync_context(client, settings, clock=clock)
    try:
        for status_store in (context.action_items, context.person_status):
            try:
                await status_store.load()
            except Exception as exc:
                logger.warning("Could not seed %s entries: %s", status_store.attribute, exc)
        yield context
    finally:
        await client.aclose()
