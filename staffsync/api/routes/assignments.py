"""Assignment store endpoints queried by person and by project."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from staffsync.db.dependencies import get_db_session
from staffsync.models.entities import AssignmentStatus
from staffsync.services.store_service import (
    AssignmentCreateData,
    AssignmentUpdateData,
    StoreService,
)

router = APIRouter(tags=["assignments"])


class AssignmentCreatePayload(BaseModel):
    person_key: str = Field(min_length=1, max_length=255)
    project_key: str = Field(min_length=1, max_length=128)
    status: AssignmentStatus = AssignmentStatus.PLANNED
    allocation_pct: int | None = Field(default=None, ge=0, le=100)
    start_date: date | None = None
    end_date: date | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    role: str | None = Field(default=None, max_length=255)
    offered_skill: str | None = Field(default=None, max_length=255)
    comment: str | None = Field(default=None, max_length=2000)


class AssignmentUpdatePayload(BaseModel):
    status: AssignmentStatus | None = None
    allocation_pct: int | None = Field(default=None, ge=0, le=100)
    start_date: date | None = None
    end_date: date | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    role: str | None = Field(default=None, max_length=255)
    offered_skill: str | None = Field(default=None, max_length=255)
    comment: str | None = Field(default=None, max_length=2000)


def _store_service(db: Session) -> StoreService:
    return StoreService(db)


@router.get("/persons/{person_key}/assignments")
def list_person_assignments(
    person_key: str,
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _store_service(db)
    items = service.list_person_assignments(person_key)
    return {"items": service.serialize_assignments(items)}


@router.get("/projects/{project_key}/assignments")
def list_project_assignments(
    project_key: str,
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _store_service(db)
    items = service.list_project_assignments(project_key)
    return {"items": service.serialize_assignments(items)}


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreatePayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _store_service(db)
    assignment = service.create_assignment(
        AssignmentCreateData(
            person_key=payload.person_key,
            project_key=payload.project_key,
            status=payload.status,
            allocation_pct=payload.allocation_pct,
            start_date=payload.start_date,
            end_date=payload.end_date,
            probability=payload.probability,
            role=payload.role,
            offered_skill=payload.offered_skill,
            comment=payload.comment,
        )
    )
    return {"id": assignment.id}


@router.patch("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdatePayload,
    db: Session = Depends(get_db_session),
) -> Response:
    service = _store_service(db)
    service.update_assignment(
        assignment_id=assignment_id,
        data=AssignmentUpdateData(changes=payload.model_dump(exclude_unset=True)),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: str,
    db: Session = Depends(get_db_session),
) -> Response:
    service = _store_service(db)
    service.delete_assignment(assignment_id=assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
