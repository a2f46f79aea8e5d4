"""ORM model package."""

from staffsync.models.entities import (
    AssignmentRecord,
    AssignmentStatus,
    ProjectCatalogEntry,
    StatusEntryRecord,
    StatusSource,
)

__all__ = [
    "AssignmentRecord",
    "AssignmentStatus",
    "ProjectCatalogEntry",
    "StatusEntryRecord",
    "StatusSource",
]
