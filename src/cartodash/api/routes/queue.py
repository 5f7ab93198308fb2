"""Queue views and lifecycle transitions."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cartodash.api.deps import get_catalog, get_operator, get_queue, get_store
from cartodash.api.routes import health
from cartodash.catalog import Catalog
from cartodash.identity import Operator, require_practitioner_access
from cartodash.queue.lifecycle import Direction, QueueService
from cartodash.queue.projection import active_record, next_client, project_queue, queue_entries
from cartodash.reports.dashboard import queue_load
from cartodash.store import RecordStore

router = APIRouter()

__all__ = ["router"]


class MoveRequest(BaseModel):
    direction: Direction


@router.get("/queue", summary="Queue buckets for every practitioner", operation_id="get_queue")
async def get_all_queues(
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> dict[str, Any]:
    snapshot = store.get_all()
    buckets = project_queue(snapshot)
    return {
        "waiting": [r.to_dict() for r in buckets.waiting],
        "in_progress": [r.to_dict() for r in buckets.in_progress],
        "finished": [r.to_dict() for r in buckets.finished],
        "load": [load.to_dict() for load in queue_load(snapshot, catalog)],
    }


@router.get(
    "/queue/{practitioner_id}",
    summary="One practitioner's queue with positions and waits",
    operation_id="get_practitioner_queue",
)
async def get_practitioner_queue(
    practitioner_id: str,
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    catalog.practitioner(practitioner_id)
    require_practitioner_access(operator, practitioner_id)
    snapshot = store.get_all()
    entries = queue_entries(snapshot, practitioner_id, catalog)
    current = active_record(snapshot, practitioner_id)
    upcoming = next_client(snapshot, practitioner_id)
    return {
        "practitioner_id": practitioner_id,
        "current": current.to_dict() if current else None,
        "next": upcoming.to_dict() if upcoming else None,
        "waiting": [
            {**e.record.to_dict(), "position": e.position, "wait_minutes": e.wait_minutes}
            for e in entries
        ],
    }


# ── Transitions ─────────────────────────────────────────


@router.post("/records/{record_id}/start", summary="Start a consultation", operation_id="start_record")
async def start_record(
    record_id: str,
    queue: Annotated[QueueService, Depends(get_queue)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    result = queue.start(record_id, operator)
    health.record_transition("start")
    return {"record": result.record.to_dict(), "open_link": result.open_link}


@router.post("/records/{record_id}/finish", summary="Finish a consultation", operation_id="finish_record")
async def finish_record(
    record_id: str,
    queue: Annotated[QueueService, Depends(get_queue)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    record = queue.finish(record_id, operator)
    health.record_transition("finish")
    return record.to_dict()


@router.post(
    "/records/{record_id}/revert",
    summary="Reopen a finished consultation (admin)",
    operation_id="revert_record",
)
async def revert_record(
    record_id: str,
    queue: Annotated[QueueService, Depends(get_queue)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    record = queue.revert(record_id, operator)
    health.record_transition("revert")
    return record.to_dict()


@router.post(
    "/records/{record_id}/move",
    summary="Swap a waiting record with its neighbour",
    operation_id="move_record",
)
async def move_record(
    record_id: str,
    body: MoveRequest,
    queue: Annotated[QueueService, Depends(get_queue)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    ordered = queue.reorder(record_id, body.direction, operator)
    health.record_transition("move")
    return {
        "record_id": record_id,
        "waiting": [
            {**r.to_dict(), "position": i} for i, r in enumerate(ordered, start=1)
        ],
    }
