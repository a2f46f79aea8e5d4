"""Client-side record shapes shared by the cache, the mutation pipeline and the store client."""

from __future__ import annotations

import secrets
from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from staffsync.models.entities import AssignmentStatus

PROVISIONAL_ID_PREFIX = "temp-"

NON_PROBABILISTIC_STATUSES = frozenset(
    {AssignmentStatus.PROSPECT, AssignmentStatus.ACTIVE, AssignmentStatus.CLOSED}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_provisional_id() -> str:
    """Unguessable client-side id used while a create is in flight."""
    return f"{PROVISIONAL_ID_PREFIX}{secrets.token_urlsafe(16)}"


def is_provisional_id(assignment_id: str) -> bool:
    return assignment_id.startswith(PROVISIONAL_ID_PREFIX)


class _AssignmentFields(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    status: AssignmentStatus = AssignmentStatus.PLANNED
    allocation_pct: int | None = Field(default=None, ge=0, le=100)
    start_date: date | None = None
    end_date: date | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    role: str | None = None
    offered_skill: str | None = None
    comment: str | None = None

    @model_validator(mode="after")
    def check_date_order(self) -> _AssignmentFields:
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        return self

    @property
    def is_open(self) -> bool:
        return self.status is not AssignmentStatus.CLOSED

    @property
    def effective_probability(self) -> int | None:
        """Probability only carries meaning for planned and on-hold links."""
        if self.status in NON_PROBABILISTIC_STATUSES:
            return None
        return self.probability


class AssignmentDraft(_AssignmentFields):
    """Create payload: an assignment without id and timestamps."""

    person_key: str = Field(min_length=1)
    project_key: str = Field(min_length=1)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Assignment(_AssignmentFields):
    """A person-to-project link as mirrored in both cache indices."""

    id: str
    person_key: str
    project_key: str
    project_name: str | None = None
    customer: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def provisional(cls, draft: AssignmentDraft, assignment_id: str | None = None) -> Assignment:
        now = utcnow()
        return cls(
            id=assignment_id or new_provisional_id(),
            created_at=now,
            updated_at=now,
            **draft.model_dump(),
        )

    @property
    def is_provisional(self) -> bool:
        return is_provisional_id(self.id)

    def with_changes(self, changes: dict[str, Any], *, updated_at: datetime) -> Assignment:
        return self.model_copy(update={**changes, "updated_at": updated_at})


class AssignmentPatch(BaseModel):
    """Partial update. Only explicitly set fields are sent, so ``None`` clears a field."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: AssignmentStatus | None = None
    allocation_pct: int | None = Field(default=None, ge=0, le=100)
    start_date: date | None = None
    end_date: date | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    role: str | None = None
    offered_skill: str | None = None
    comment: str | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)
