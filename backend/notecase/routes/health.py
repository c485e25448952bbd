"""
Notecase Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Pings the note repository and the attachment store, reports both.
Who:   Called by Docker health checks, load balancers and monitoring.

Status levels:
    - healthy:   both stores reachable (HTTP 200)
    - degraded:  attachment store down; notes without files still work (HTTP 200)
    - unhealthy: repository down (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from notecase import __version__
from notecase.dependencies import get_attachment_store, get_note_repository
from notecase.schemas.note import HealthResponse
from notecase.services.attachment_store import AttachmentStore
from notecase.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Note repository unreachable", "model": HealthResponse}},
)
async def health_check(
    response: Response,
    repository: NoteRepository = Depends(get_note_repository),
    store: AttachmentStore = Depends(get_attachment_store),
) -> HealthResponse:
    overall = "healthy"

    # ── Check Repository ──────────────────────────────────────────────────
    db_status = "connected"
    if not await repository.ping():
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: note repository unreachable")

    # ── Check Attachment Store ────────────────────────────────────────────
    storage_status = "available"
    if not await store.ping():
        storage_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall
        logger.warning("Health check: attachment store unreachable")

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
