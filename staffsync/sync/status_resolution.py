"""Three-tier precedence store for derived per-entity attributes.

Sources rank ``manual`` > ``rule`` > ``default``. Once an entry is manual,
only ``set_manual`` may change or clear it; rule merges skip it silently.
The in-memory map is authoritative between persistence round trips.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from staffsync.models.entities import StatusSource
from staffsync.sync.protocols import StatusPersistence

logger = logging.getLogger(__name__)


class _Clear:
    def __repr__(self) -> str:
        return "CLEAR"


CLEAR: Final = _Clear()
"""Candidate value that removes an entry instead of asserting a value."""

ACTION_ITEM_ATTRIBUTE = "action_item"
PERSON_STATUS_ATTRIBUTE = "person_status"


@dataclass(frozen=True, slots=True)
class StatusEntry:
    value: Any
    source: StatusSource
    updated_by: str | None = None


class StatusResolutionStore:
    """Entity key -> ``StatusEntry`` for one attribute, enforcing manual precedence."""

    def __init__(self, attribute: str, persistence: StatusPersistence | None = None) -> None:
        self.attribute = attribute
        self._persistence = persistence
        self._entries: dict[str, StatusEntry] = {}
        self.loaded = persistence is None

    def get(self, entity_key: str) -> Any | None:
        entry = self._entries.get(entity_key)
        return entry.value if entry is not None else None

    def get_source(self, entity_key: str) -> StatusSource:
        entry = self._entries.get(entity_key)
        return entry.source if entry is not None else StatusSource.DEFAULT

    def entry(self, entity_key: str) -> StatusEntry | None:
        return self._entries.get(entity_key)

    def snapshot(self) -> dict[str, StatusEntry]:
        return dict(self._entries)

    def __contains__(self, entity_key: object) -> bool:
        return entity_key in self._entries

    async def load(self) -> None:
        """Seed memory from persistence.

        Entries written since startup are kept, except that a persisted manual
        entry is only replaced by an in-memory manual one.
        """
        if self._persistence is None:
            self.loaded = True
            return
        rows = await self._persistence.load_all()
        seeded = {
            row.entity_key: StatusEntry(value=row.value, source=row.source, updated_by=row.updated_by)
            for row in rows
        }
        for entity_key, entry in self._entries.items():
            persisted = seeded.get(entity_key)
            if (
                persisted is not None
                and persisted.source is StatusSource.MANUAL
                and entry.source is not StatusSource.MANUAL
            ):
                continue
            seeded[entity_key] = entry
        self._entries = seeded
        self.loaded = True
        logger.info("Loaded %d %s entries", len(rows), self.attribute)

    async def set_manual(self, entity_key: str, value: Any, updated_by: str | None = None) -> None:
        """Unconditional manual write. ``CLEAR`` moves the entity out of the manual state."""
        if value is CLEAR:
            if entity_key in self._entries:
                await self._write(entity_key, None)
            return
        await self._write(entity_key, StatusEntry(value=value, source=StatusSource.MANUAL, updated_by=updated_by))

    async def merge_rule(self, entity_key: str, value: Any) -> bool:
        """Apply a rule candidate unless the entity is manual. Returns whether state changed.

        Until ``load`` has run, persisted manual entries are unknown, so rule
        candidates are dropped.
        """
        if not self.loaded:
            logger.debug("Rule candidate for %s dropped: %s entries not loaded", entity_key, self.attribute)
            return False

        current = self._entries.get(entity_key)
        if current is not None and current.source is StatusSource.MANUAL:
            logger.debug("Rule candidate for %s dropped: manual %s entry", entity_key, self.attribute)
            return False

        if value is CLEAR:
            if current is None:
                return False
            await self._write(entity_key, None)
            return True

        entry = StatusEntry(value=value, source=StatusSource.RULE)
        if current == entry:
            return False
        await self._write(entity_key, entry)
        return True

    def merge_default(self, entity_key: str, value: Any) -> bool:
        """Set a default only where nothing stronger exists. Defaults are not persisted."""
        current = self._entries.get(entity_key)
        if current is not None and current.source is not StatusSource.DEFAULT:
            return False
        entry = StatusEntry(value=value, source=StatusSource.DEFAULT)
        if current == entry:
            return False
        self._entries[entity_key] = entry
        return True

    async def merge_rule_candidates(self, candidates: Mapping[str, Any]) -> list[str]:
        changed: list[str] = []
        for entity_key, value in candidates.items():
            if await self.merge_rule(entity_key, value):
                changed.append(entity_key)
        if changed:
            logger.info("Rule merge changed %d %s entries", len(changed), self.attribute)
        return changed

    async def _write(self, entity_key: str, entry: StatusEntry | None) -> None:
        """Apply ``entry`` (``None`` removes) in memory, then persist it.

        A failed persistence call puts the previous entry back, unless another
        write replaced ours in the meantime.
        """
        previous = self._entries.get(entity_key)
        if entry is None:
            self._entries.pop(entity_key, None)
        else:
            self._entries[entity_key] = entry
        if self._persistence is None:
            return
        try:
            if entry is None:
                await self._persistence.delete(entity_key)
            else:
                await self._persistence.upsert(entity_key, entry.value, entry.source, entry.updated_by)
        except Exception:
            if self._entries.get(entity_key) is entry:
                if previous is None:
                    self._entries.pop(entity_key, None)
                else:
                    self._entries[entity_key] = previous
            raise
