import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..config import settings, logger
from ..dependencies import get_repository
from ..providers.database import JourneyRepository
from ..services.navigation import NavigationState, render_view
from ..services.progress import compute_journey_progress
from ..utils.limiter import limiter

router = APIRouter(prefix="/api/v1/journeys", tags=["journeys"])


@router.get("")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def list_journeys(request: Request, repo: JourneyRepository = Depends(get_repository)):
    start_time = time.perf_counter()
    journeys = await repo.list_journeys(public_only=True)
    phases = await repo.list_phases(public_only=True)
    items = [{**j.to_api(), **compute_journey_progress(j, phases).to_api()} for j in journeys]
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(f"Journeys retrieved: {len(items)} items | {elapsed:.1f}ms")
    return {"status": "success", "journeys": items}


@router.get("/{journey_id}")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def get_journey(request: Request, journey_id: str, repo: JourneyRepository = Depends(get_repository)):
    start_time = time.perf_counter()
    snapshot = await repo.load_snapshot(journey_id, public_only=True)
    view = render_view(snapshot, NavigationState())
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(f"Journey retrieved: {journey_id} ({len(snapshot.phases)} phases) | {elapsed:.1f}ms")
    return {
        "status": "success",
        "journey": {**view.journey.to_api(), **view.progress.to_api()},
        # live counts replace the stored totalModules cache
        "phases": [{**s.phase.to_api(), **s.stats.to_api()} for s in view.phases],
    }


@router.get("/{journey_id}/view")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def journey_view(
    request: Request,
    journey_id: str,
    phase: Optional[str] = None,
    focus_area: Optional[str] = Query(None, alias="focusArea"),
    repo: JourneyRepository = Depends(get_repository),
):
    """
    Drill-down view for bookmarked selectors.
    - no `phase`: all phases
    - `phase`: focus-area cards for that phase
    - `phase` + `focusArea`: entries of that focus area grouped by status
    """
    start_time = time.perf_counter()
    snapshot = await repo.load_snapshot(journey_id, public_only=True)
    state = NavigationState.from_query(phase=phase, focus_area=focus_area)
    view = render_view(snapshot, state)
    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info(f"Journey view: {journey_id} [{state.mode.value}] | {elapsed:.1f}ms")
    return {"status": "success", "view": view.to_api()}
