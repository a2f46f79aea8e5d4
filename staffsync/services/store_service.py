"""Application service behind the assignment store API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from staffsync.models.entities import (
    AssignmentRecord,
    AssignmentStatus,
    ProjectCatalogEntry,
    StatusEntryRecord,
    StatusSource,
)
from staffsync.repositories.store_repository import StoreRepository

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = frozenset(
    {
        "status",
        "allocation_pct",
        "start_date",
        "end_date",
        "probability",
        "role",
        "offered_skill",
        "comment",
    }
)


@dataclass(slots=True)
class AssignmentCreateData:
    person_key: str
    project_key: str
    status: AssignmentStatus = AssignmentStatus.PLANNED
    allocation_pct: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    probability: int | None = None
    role: str | None = None
    offered_skill: str | None = None
    comment: str | None = None


@dataclass(slots=True)
class AssignmentUpdateData:
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ProjectUpsertData:
    name: str
    customer: str | None = None


@dataclass(slots=True)
class StatusEntryUpsertData:
    value: Any
    source: StatusSource
    updated_by: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_date_order(start_date: date | None, end_date: date | None) -> None:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise HTTPException(
            status_code=422,
            detail="end_date must be greater than or equal to start_date.",
        )


class StoreService:
    """Service implementing assignment CRUD, project catalog and status entries."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = StoreRepository(db)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_assignment(
        assignment: AssignmentRecord,
        project: ProjectCatalogEntry | None = None,
    ) -> dict[str, object]:
        return {
            "id": assignment.id,
            "person_key": assignment.person_key,
            "project_key": assignment.project_key,
            "status": assignment.status.value,
            "allocation_pct": assignment.allocation_pct,
            "start_date": assignment.start_date.isoformat() if assignment.start_date else None,
            "end_date": assignment.end_date.isoformat() if assignment.end_date else None,
            "probability": assignment.probability,
            "role": assignment.role,
            "offered_skill": assignment.offered_skill,
            "comment": assignment.comment,
            "project_name": project.name if project is not None else None,
            "customer": project.customer if project is not None else None,
            "created_at": assignment.created_at.isoformat(),
            "updated_at": assignment.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_project(project: ProjectCatalogEntry) -> dict[str, object]:
        return {
            "key": project.key,
            "name": project.name,
            "customer": project.customer,
            "updated_at": project.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_status_entry(entry: StatusEntryRecord) -> dict[str, object]:
        return {
            "entity_key": entry.entity_key,
            "value": entry.value,
            "source": entry.source.value,
            "updated_by": entry.updated_by,
            "updated_at": entry.updated_at.isoformat(),
        }

    def serialize_assignments(self, assignments: list[AssignmentRecord]) -> list[dict[str, object]]:
        projects = self.repo.projects_by_key({assignment.project_key for assignment in assignments})
        return [
            self.serialize_assignment(assignment, projects.get(assignment.project_key))
            for assignment in assignments
        ]

    # ---------- Assignments ----------
    def list_person_assignments(self, person_key: str) -> list[AssignmentRecord]:
        return self.repo.list_assignments_for_person(person_key)

    def list_project_assignments(self, project_key: str) -> list[AssignmentRecord]:
        return self.repo.list_assignments_for_project(project_key)

    def _ensure_no_open_duplicate(
        self,
        *,
        person_key: str,
        project_key: str,
        exclude_id: str | None = None,
    ) -> None:
        existing = self.repo.find_open_assignment(
            person_key=person_key,
            project_key=project_key,
            exclude_id=exclude_id,
        )
        if existing is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A non-closed assignment already links this person to this project.",
            )

    def create_assignment(self, data: AssignmentCreateData) -> AssignmentRecord:
        person_key = data.person_key.strip()
        project_key = data.project_key.strip()
        if not person_key or not project_key:
            raise HTTPException(
                status_code=422,
                detail="person_key and project_key must not be blank.",
            )
        _ensure_date_order(data.start_date, data.end_date)
        if data.status is not AssignmentStatus.CLOSED:
            self._ensure_no_open_duplicate(person_key=person_key, project_key=project_key)

        now = _utcnow()
        assignment = AssignmentRecord(
            person_key=person_key,
            project_key=project_key,
            status=data.status,
            allocation_pct=data.allocation_pct,
            start_date=data.start_date,
            end_date=data.end_date,
            probability=data.probability,
            role=data.role,
            offered_skill=data.offered_skill,
            comment=data.comment,
            created_at=now,
            updated_at=now,
        )

        self.repo.add_assignment(assignment)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A non-closed assignment already links this person to this project.",
            ) from exc

        self.db.refresh(assignment)
        logger.info(
            "Created assignment %s (person=%s project=%s status=%s)",
            assignment.id,
            assignment.person_key,
            assignment.project_key,
            assignment.status.value,
        )
        return assignment

    def update_assignment(self, *, assignment_id: str, data: AssignmentUpdateData) -> AssignmentRecord:
        assignment = self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found.")

        unknown = set(data.changes) - PATCHABLE_FIELDS
        if unknown:
            raise HTTPException(
                status_code=422,
                detail=f"Fields cannot be patched: {', '.join(sorted(unknown))}.",
            )

        target_status = data.changes.get("status", assignment.status)
        if target_status is None:
            raise HTTPException(
                status_code=422,
                detail="status must not be null.",
            )
        _ensure_date_order(
            data.changes.get("start_date", assignment.start_date),
            data.changes.get("end_date", assignment.end_date),
        )
        if target_status is not AssignmentStatus.CLOSED:
            self._ensure_no_open_duplicate(
                person_key=assignment.person_key,
                project_key=assignment.project_key,
                exclude_id=assignment.id,
            )

        for name, value in data.changes.items():
            setattr(assignment, name, value)
        assignment.updated_at = _utcnow()

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Assignment update violates store constraints.",
            ) from exc

        self.db.refresh(assignment)
        return assignment

    def delete_assignment(self, *, assignment_id: str) -> None:
        assignment = self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found.")
        self.repo.delete_assignment(assignment)
        self.db.commit()
        logger.info("Deleted assignment %s", assignment_id)

    # ---------- Project catalog ----------
    def upsert_project(self, *, project_key: str, data: ProjectUpsertData) -> ProjectCatalogEntry:
        project = self.repo.get_project(project_key)
        if project is None:
            project = ProjectCatalogEntry(key=project_key, name=data.name.strip(), customer=data.customer)
            self.repo.add_project(project)
        else:
            project.name = data.name.strip()
            project.customer = data.customer
        project.updated_at = _utcnow()
        self.db.commit()
        self.db.refresh(project)
        return project

    # ---------- Status entries ----------
    def list_status_entries(self, attribute: str) -> list[StatusEntryRecord]:
        return self.repo.list_status_entries(attribute)

    def upsert_status_entry(
        self,
        *,
        attribute: str,
        entity_key: str,
        data: StatusEntryUpsertData,
    ) -> StatusEntryRecord:
        entry = self.repo.get_status_entry(attribute=attribute, entity_key=entity_key)
        if entry is None:
            entry = StatusEntryRecord(attribute=attribute, entity_key=entity_key, source=data.source)
            self.repo.add_status_entry(entry)
        entry.value = data.value
        entry.source = data.source
        entry.updated_by = data.updated_by
        entry.updated_at = _utcnow()
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def delete_status_entry(self, *, attribute: str, entity_key: str) -> None:
        entry = self.repo.get_status_entry(attribute=attribute, entity_key=entity_key)
        if entry is None:
            return
        self.repo.delete_status_entry(entry)
        self.db.commit()
