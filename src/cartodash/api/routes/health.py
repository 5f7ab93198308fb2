"""Health, readiness, and metrics endpoints."""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Request, Response
from starlette.responses import JSONResponse

from cartodash.healthchecks import check_postgres, check_redis
from cartodash.records import RecordStatus

router = APIRouter()

__all__ = ["router", "record_request", "record_transition"]

# ──────────── In-process metrics counters ────────────
_metrics: dict[str, Any] = {
    "requests_total": 0,
    "requests_by_status": {},
    "transitions": {},
    "start_time": time.time(),
}


def record_request(status: int) -> None:
    """Call from middleware to track request counts."""
    _metrics["requests_total"] += 1
    key = str(status)
    _metrics["requests_by_status"][key] = _metrics["requests_by_status"].get(key, 0) + 1


def record_transition(kind: str) -> None:
    """Count lifecycle operations (start, finish, revert, move)."""
    _metrics["transitions"][kind] = _metrics["transitions"].get(kind, 0) + 1


# ──────────── Endpoints ────────────


@router.get("/health", summary="Liveness probe", operation_id="health")
async def health() -> dict[str, str]:
    """Liveness: app process is running."""
    return {"status": "ok"}


@router.get("/ready", summary="Readiness probe", operation_id="ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness: configured dependencies reachable.

    A dependency that is not configured reports ``null`` and does not block.
    Returns 200 when all configured checks pass, 503 otherwise.
    """
    settings = request.app.state.settings
    pg = await check_postgres(settings.pg_dsn)
    rd = await check_redis(settings.redis_url)

    checks = {"postgres": pg, "redis": rd}
    all_ok = all(v is not False for v in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"ready": all_ok, "checks": checks},
    )


@router.get("/metrics", summary="Prometheus metrics", operation_id="metrics")
async def metrics(request: Request) -> Response:
    """Prometheus text exposition format."""
    uptime = time.time() - _metrics["start_time"]

    lines = [
        "# HELP cartodash_up Dashboard service is up",
        "# TYPE cartodash_up gauge",
        "cartodash_up 1",
        "",
        "# HELP cartodash_uptime_seconds Seconds since process start",
        "# TYPE cartodash_uptime_seconds gauge",
        f"cartodash_uptime_seconds {uptime:.1f}",
        "",
        "# HELP cartodash_requests_total Total HTTP requests",
        "# TYPE cartodash_requests_total counter",
        f"cartodash_requests_total {_metrics['requests_total']}",
        "",
    ]

    # Per-status breakdown
    for status, count in sorted(_metrics["requests_by_status"].items()):
        lines.append(f'cartodash_requests_total{{status="{status}"}} {count}')

    lines += [
        "",
        "# HELP cartodash_transitions_total Lifecycle operations applied",
        "# TYPE cartodash_transitions_total counter",
    ]
    for kind, count in sorted(_metrics["transitions"].items()):
        lines.append(f'cartodash_transitions_total{{kind="{kind}"}} {count}')

    store = getattr(request.app.state, "store", None)
    if store is not None:
        depth: dict[str, int] = {}
        for record in store.get_by_status(RecordStatus.WAITING):
            depth[record.practitioner_id] = depth.get(record.practitioner_id, 0) + 1
        lines += [
            "",
            "# HELP cartodash_queue_depth Waiting consultations per practitioner",
            "# TYPE cartodash_queue_depth gauge",
        ]
        for practitioner_id, count in sorted(depth.items()):
            lines.append(f'cartodash_queue_depth{{practitioner="{practitioner_id}"}} {count}')
        lines += [
            "",
            "# HELP cartodash_records Records held in memory",
            "# TYPE cartodash_records gauge",
            f"cartodash_records {len(store.get_all())}",
        ]

    lines.append("")
    return Response(content="\n".join(lines), media_type="text/plain; charset=utf-8")
