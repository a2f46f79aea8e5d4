"""Status entry persistence endpoints (manual / rule / default sources)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from staffsync.db.dependencies import get_db_session
from staffsync.models.entities import StatusSource
from staffsync.services.store_service import StatusEntryUpsertData, StoreService

router = APIRouter(prefix="/status-entries", tags=["status-entries"])


class StatusEntryUpsertPayload(BaseModel):
    value: Any = None
    source: StatusSource
    updated_by: str | None = Field(default=None, max_length=255)


@router.get("/{attribute}")
def list_status_entries(
    attribute: str,
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = StoreService(db)
    items = service.list_status_entries(attribute)
    return {"items": [service.serialize_status_entry(entry) for entry in items]}


@router.put("/{attribute}/{entity_key}")
def upsert_status_entry(
    attribute: str,
    entity_key: str,
    payload: StatusEntryUpsertPayload,
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = StoreService(db)
    entry = service.upsert_status_entry(
        attribute=attribute,
        entity_key=entity_key,
        data=StatusEntryUpsertData(
            value=payload.value,
            source=payload.source,
            updated_by=payload.updated_by,
        ),
    )
    return service.serialize_status_entry(entry)


@router.delete("/{attribute}/{entity_key}", status_code=status.HTTP_204_NO_CONTENT)
def delete_status_entry(
    attribute: str,
    entity_key: str,
    db: Session = Depends(get_db_session),
) -> Response:
    service = StoreService(db)
    service.delete_status_entry(attribute=attribute, entity_key=entity_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
