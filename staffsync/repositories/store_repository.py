"""Repository helpers for the assignment store."""

from __future__ import annotations

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from staffsync.models.entities import (
    AssignmentRecord,
    AssignmentStatus,
    ProjectCatalogEntry,
    StatusEntryRecord,
)


class StoreRepository:
    """Persistence operations used by the store service."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Assignments ----------
    def get_assignment(self, assignment_id: str) -> AssignmentRecord | None:
        return self.db.scalar(select(AssignmentRecord).where(AssignmentRecord.id == assignment_id))

    def list_assignments_for_person(self, person_key: str) -> list[AssignmentRecord]:
        return self.db.scalars(
            select(AssignmentRecord)
            .where(AssignmentRecord.person_key == person_key)
            .order_by(AssignmentRecord.created_at.desc(), AssignmentRecord.id.asc())
        ).all()

    def list_assignments_for_project(self, project_key: str) -> list[AssignmentRecord]:
        return self.db.scalars(
            select(AssignmentRecord)
            .where(AssignmentRecord.project_key == project_key)
            .order_by(AssignmentRecord.created_at.desc(), AssignmentRecord.id.asc())
        ).all()

    def find_open_assignment(
        self,
        *,
        person_key: str,
        project_key: str,
        exclude_id: str | None = None,
    ) -> AssignmentRecord | None:
        conditions = [
            AssignmentRecord.person_key == person_key,
            AssignmentRecord.project_key == project_key,
            AssignmentRecord.status != AssignmentStatus.CLOSED,
        ]
        if exclude_id is not None:
            conditions.append(AssignmentRecord.id != exclude_id)
        return self.db.scalar(select(AssignmentRecord).where(and_(*conditions)))

    def add_assignment(self, assignment: AssignmentRecord) -> AssignmentRecord:
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def delete_assignment(self, assignment: AssignmentRecord) -> None:
        self.db.delete(assignment)
        self.db.flush()

    # ---------- Project catalog ----------
    def get_project(self, project_key: str) -> ProjectCatalogEntry | None:
        return self.db.scalar(select(ProjectCatalogEntry).where(ProjectCatalogEntry.key == project_key))

    def projects_by_key(self, project_keys: set[str]) -> dict[str, ProjectCatalogEntry]:
        if not project_keys:
            return {}
        rows = self.db.scalars(select(ProjectCatalogEntry).where(ProjectCatalogEntry.key.in_(project_keys))).all()
        return {row.key: row for row in rows}

    def add_project(self, project: ProjectCatalogEntry) -> ProjectCatalogEntry:
        self.db.add(project)
        self.db.flush()
        return project

    # ---------- Status entries ----------
    def list_status_entries(self, attribute: str) -> list[StatusEntryRecord]:
        return self.db.scalars(
            select(StatusEntryRecord)
            .where(StatusEntryRecord.attribute == attribute)
            .order_by(StatusEntryRecord.entity_key.asc())
        ).all()

    def get_status_entry(self, *, attribute: str, entity_key: str) -> StatusEntryRecord | None:
        return self.db.scalar(
            select(StatusEntryRecord).where(
                and_(
                    StatusEntryRecord.attribute == attribute,
                    StatusEntryRecord.entity_key == entity_key,
                )
            )
        )

    def add_status_entry(self, entry: StatusEntryRecord) -> StatusEntryRecord:
        self.db.add(entry)
        self.db.flush()
        return entry

    def delete_status_entry(self, entry: StatusEntryRecord) -> None:
        self.db.delete(entry)
        self.db.flush()
