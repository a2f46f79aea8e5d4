"""Project catalog endpoints used for denormalized assignment fields."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from staffsync.db.dependencies import get_db_session
from staffsync.services.store_service import ProjectUpsertData, StoreService

router = APIRouter(tags=["projects"])


class ProjectUpsertPayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    customer: str | None = Field(default=None, max_length=255)


@router.put("/projects/{project_key}")
def upsert_project(
    project_key: str,
    payload: ProjectUpsertPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = StoreService(db)
    project = service.upsert_project(
        project_key=project_key,
        data=ProjectUpsertData(name=payload.name, customer=payload.customer),
    )
    return service.serialize_project(project)
