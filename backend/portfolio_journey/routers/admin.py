import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import settings, logger
from ..dependencies import get_repository
from ..exceptions import PayloadValidationError
from ..models import EntryCreate, EntryUpdate, JourneyCreate, JourneyUpdate, PhaseCreate, PhaseUpdate, Status
from ..providers.database import BulkResult, JourneyRepository
from ..services.audit import audit_records
from ..services.progress import compute_journey_progress, compute_phase_stats, count_entries_by_type
from ..utils.limiter import limiter

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


class BulkStatusUpdate(BaseModel):
    ids: list[str] = Field(..., min_length=1)
    status: Status


class BulkDelete(BaseModel):
    ids: list[str] = Field(..., min_length=1)


def _check_bulk_size(ids: list[str]) -> None:
    if len(ids) > settings.BULK_MAX_IDS:
        raise PayloadValidationError(f"Too many ids: {len(ids)} (max {settings.BULK_MAX_IDS})")


def _bulk_response(result: BulkResult, action: str):
    if result.ok:
        return {"status": "success", "message": f"{action}: {len(result.succeeded)} entries", **result.to_api()}
    # some ids failed: surface both lists instead of reporting success
    return JSONResponse(
        status_code=207,
        content={
            "status": "partial",
            "message": f"{action}: {len(result.succeeded)} succeeded, {len(result.failed)} failed",
            **result.to_api(),
        },
    )


# ============================================
# Journeys
# ============================================

@router.get("/journeys")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def list_journeys(request: Request, repo: JourneyRepository = Depends(get_repository)):
    start_time = time.perf_counter()
    journeys = await repo.list_journeys(public_only=False)
    phases = await repo.list_phases()
    items = [{**j.to_api(), **compute_journey_progress(j, phases).to_api()} for j in journeys]
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(f"Admin journeys retrieved: {len(items)} items | {elapsed:.1f}ms")
    return {"status": "success", "journeys": items}


@router.post("/journeys", status_code=201)
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def create_journey(request: Request, data: JourneyCreate, repo: JourneyRepository = Depends(get_repository)):
    journey = await repo.create_journey(data)
    return {"status": "success", "message": "Journey created", "journey": journey.to_api()}


@router.get("/journeys/{journey_id}")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def get_journey(request: Request, journey_id: str, repo: JourneyRepository = Depends(get_repository)):
    snapshot = await repo.load_snapshot(journey_id, public_only=False)
    phases = [{**p.to_api(), **compute_phase_stats(p, snapshot.entries).to_api()} for p in snapshot.phases]
    return {
        "status": "success",
        "journey": {**snapshot.journey.to_api(), **compute_journey_progress(snapshot.journey, snapshot.phases).to_api()},
        "phases": phases,
        "entryTypes": count_entries_by_type(snapshot.entries),
    }


@router.patch("/journeys/{journey_id}")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def update_journey(
    request: Request, journey_id: str, data: JourneyUpdate, repo: JourneyRepository = Depends(get_repository)
):
    journey = await repo.update_journey(journey_id, data)
    return {"status": "success", "message": "Journey updated", "journey": journey.to_api()}


@router.delete("/journeys/{journey_id}")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def delete_journey(
    request: Request,
    journey_id: str,
    cascade: bool = False,
    repo: JourneyRepository = Depends(get_repository),
):
    deleted = await repo.delete_journey(journey_id, cascade=cascade)
    return {"status": "success", "message": f"Journey deleted ({len(deleted)} documents)", "deleted": deleted}


# ============================================
# Phases
# ============================================

@router.get("/journeys/{journey_id}/phases")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def list_phases(request: Request, journey_id: str, repo: JourneyRepository = Depends(get_repository)):
    journey = await repo.get_journey(journey_id)
    phases = await repo.list_phases(journey.id)
    entries = await repo.list_entries()
    items = [{**p.to_api(), **compute_phase_stats(p, entries).to_api()} for p in phases]
    return {"status": "success", "phases": items}


@router.post("/phases", status_code=201)
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def create_phase(request: Request, data: PhaseCreate, repo: JourneyRepository = Depends(get_repository)):
    phase = await repo.create_phase(data)
    return {"status": "success", "message": "Phase created", "phase": phase.to_api()}


@router.patch("/phases/{phase_id}")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def update_phase(request: Request, phase_id: str, data: PhaseUpdate, repo: JourneyRepository = Depends(get_repository)):
    phase = await repo.update_phase(phase_id, data)
    return {"status": "success", "message": "Phase updated", "phase": phase.to_api()}


@router.delete("/phases/{phase_id}")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def delete_phase(
    request: Request,
    phase_id: str,
    cascade: bool = False,
    repo: JourneyRepository = Depends(get_repository),
):
    deleted = await repo.delete_phase(phase_id, cascade=cascade)
    return {"status": "success", "message": f"Phase deleted ({len(deleted)} documents)", "deleted": deleted}


# ============================================
# Entries
# ============================================

@router.get("/phases/{phase_id}/entries")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def list_entries(request: Request, phase_id: str, repo: JourneyRepository = Depends(get_repository)):
    phase = await repo.get_phase(phase_id)
    entries = await repo.list_entries(phase.id)
    return {"status": "success", "entries": [e.to_api() for e in entries], "count": len(entries)}


@router.post("/entries", status_code=201)
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def create_entry(request: Request, data: EntryCreate, repo: JourneyRepository = Depends(get_repository)):
    entry = await repo.create_entry(data)
    return {"status": "success", "message": "Entry created", "entry": entry.to_api()}


@router.post("/entries/bulk-status")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def bulk_update_status(request: Request, data: BulkStatusUpdate, repo: JourneyRepository = Depends(get_repository)):
    _check_bulk_size(data.ids)
    start_time = time.perf_counter()
    result = await repo.bulk_update_status(data.ids, data.status)
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(f"Bulk status -> {data.status.value}: {len(result.succeeded)}/{len(data.ids)} | {elapsed:.1f}ms")
    return _bulk_response(result, f"Marked {data.status.value}")


@router.post("/entries/bulk-delete")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def bulk_delete(request: Request, data: BulkDelete, repo: JourneyRepository = Depends(get_repository)):
    _check_bulk_size(data.ids)
    start_time = time.perf_counter()
    result = await repo.bulk_delete(data.ids)
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(f"Bulk delete: {len(result.succeeded)}/{len(data.ids)} | {elapsed:.1f}ms")
    return _bulk_response(result, "Deleted")


@router.get("/entries/{entry_id}")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def get_entry(request: Request, entry_id: str, repo: JourneyRepository = Depends(get_repository)):
    entry = await repo.get_entry(entry_id)
    return {"status": "success", "entry": entry.to_api()}


@router.patch("/entries/{entry_id}")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def update_entry(request: Request, entry_id: str, data: EntryUpdate, repo: JourneyRepository = Depends(get_repository)):
    entry = await repo.update_entry(entry_id, data)
    return {"status": "success", "message": "Entry updated", "entry": entry.to_api()}


@router.delete("/entries/{entry_id}")
@limiter.limit(settings.RATE_LIMIT_SAVE)
async def delete_entry(request: Request, entry_id: str, repo: JourneyRepository = Depends(get_repository)):
    await repo.delete_entry(entry_id)
    return {"status": "success", "message": "Entry deleted"}


# ============================================
# Audit
# ============================================

@router.get("/audit")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def audit(
    request: Request,
    journey_id: Optional[str] = Query(None, alias="journeyId"),
    repo: JourneyRepository = Depends(get_repository),
):
    start_time = time.perf_counter()
    journeys, phases, entries = await repo.load_audit_records(journey_id)
    report = audit_records(phases, entries, journeys)
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(
        f"Audit: {len(report.errors)} errors, {len(report.warnings)} warnings "
        f"over {report.entry_count} entries | {elapsed:.1f}ms"
    )
    return {"status": "success", "summary": report.summary(), "findings": [f.to_api() for f in report.findings]}
