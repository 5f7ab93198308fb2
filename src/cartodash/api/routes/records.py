"""Consultation record endpoints: create, browse, edit."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field

from cartodash.api.deps import business_now, get_catalog, get_operator, get_queue, get_store
from cartodash.catalog import Catalog
from cartodash.errors import RecordNotFoundError, StaleRecordError, ValidationError
from cartodash.identity import Operator, require_practitioner_access
from cartodash.queue.lifecycle import QueueService
from cartodash.queue.projection import estimated_wait_minutes, queue_position
from cartodash.records import RecordStatus
from cartodash.store import RecordStore

router = APIRouter()

__all__ = ["router"]

_REQUIRED_FIELDS = ("client_name", "consultation_type_id", "date", "payment_time")


class RecordIn(BaseModel):
    """Consultation captured at payment time."""

    client_name: str = Field(min_length=1, max_length=200)
    consultation_type_id: str = Field(min_length=1)
    practitioner_id: str = Field(min_length=1)
    date: dt.date | None = None  # defaults to today, business time
    payment_time: dt.time | None = None  # defaults to now, business time
    value: Decimal | None = Field(default=None, ge=0)  # defaults to the type's base price
    status: Literal["waiting", "paid_only"] = "waiting"
    campaign: str | None = None
    conversation_link: str | None = None


class RecordPatch(BaseModel):
    """Editable fields; lifecycle fields change only through transitions."""

    client_name: str | None = Field(default=None, min_length=1, max_length=200)
    consultation_type_id: str | None = None
    date: dt.date | None = None
    payment_time: dt.time | None = None
    campaign: str | None = None
    conversation_link: str | None = None
    queue_position: int | None = Field(default=None, ge=1)
    version: int | None = None  # optimistic-concurrency token from the last read


@router.post(
    "/records",
    status_code=status.HTTP_201_CREATED,
    summary="Register a paid consultation",
    operation_id="create_record",
)
async def create_record(
    body: RecordIn,
    request: Request,
    queue: Annotated[QueueService, Depends(get_queue)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    require_practitioner_access(operator, body.practitioner_id)
    now = business_now(request)
    record = queue.enqueue(
        client_name=body.client_name,
        consultation_type_id=body.consultation_type_id,
        practitioner_id=body.practitioner_id,
        day=body.date or now.date(),
        payment_time=body.payment_time or now.time().replace(second=0, microsecond=0),
        value=body.value,
        status=RecordStatus(body.status),
        campaign=body.campaign,
        conversation_link=body.conversation_link,
    )
    return record.to_dict()


@router.get("/records", summary="List consultation records", operation_id="list_records")
async def list_records(
    store: Annotated[RecordStore, Depends(get_store)],
    status_filter: Annotated[RecordStatus | None, Query(alias="status")] = None,
    day: Annotated[dt.date | None, Query(alias="date")] = None,
    practitioner_id: str | None = None,
) -> list[dict[str, Any]]:
    if status_filter is not None:
        records = store.get_by_status(status_filter)
    elif day is not None:
        records = store.get_by_date(day)
    else:
        records = store.get_all()
    if status_filter is not None and day is not None:
        records = [r for r in records if r.date == day]
    if practitioner_id:
        records = [r for r in records if r.practitioner_id == practitioner_id]
    records.sort(key=lambda r: (r.date, r.payment_time, r.created_at))
    return [r.to_dict() for r in records]


@router.get("/records/{record_id}", summary="Fetch one record", operation_id="get_record")
async def get_record(
    record_id: str,
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> dict[str, Any]:
    snapshot = store.get_all()
    record = next((r for r in snapshot if r.id == record_id), None)
    if record is None:
        raise RecordNotFoundError(record_id)
    return {
        **record.to_dict(),
        "position": queue_position(snapshot, record_id),  # 0 unless waiting
        "wait_minutes": estimated_wait_minutes(snapshot, record_id, catalog),
    }


@router.patch("/records/{record_id}", summary="Edit a record", operation_id="update_record")
async def update_record(
    record_id: str,
    body: RecordPatch,
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    expected_version = changes.pop("version", None)
    if not changes:
        raise ValidationError("No fields to update")
    missing = sorted(k for k in _REQUIRED_FIELDS if k in changes and changes[k] is None)
    if missing:
        raise ValidationError(f"Fields cannot be cleared: {', '.join(missing)}")
    if "consultation_type_id" in changes:
        catalog.consultation_type(changes["consultation_type_id"])

    current = store.get(record_id)
    if current is None:
        raise RecordNotFoundError(record_id)
    require_practitioner_access(operator, current.practitioner_id)
    if "queue_position" in changes and current.status != RecordStatus.WAITING:
        raise ValidationError(
            f"queue_position applies only to waiting records; {record_id} is {current.status.value}"
        )
    if expected_version is not None and expected_version != current.version:
        raise StaleRecordError(record_id, expected_version)

    updated = store.update(record_id, **changes)
    if updated is None:
        raise RecordNotFoundError(record_id)
    return updated.to_dict()
