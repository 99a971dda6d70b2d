"""
Three-level drill-down over a loaded journey snapshot.

    ALL_PHASES          no phase selected
    PHASE_OVERVIEW      phase selected, focus-area cards shown
    FOCUS_AREA_ENTRIES  phase + focus area selected, entries grouped by status

The state is only the two selectors, so it round-trips through a URL query
string. Rendering reads the snapshot and never the store.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from pydantic import Field

from ..exceptions import NavigationError, NotFoundError
from ..models import CamelModel, Journey, JourneySnapshot, Phase
from .progress import (
    FocusAreaStats,
    JourneyProgress,
    PhaseStats,
    StatusGroups,
    compute_focus_area_stats,
    compute_journey_progress,
    compute_phase_stats,
    group_entries_by_status,
)


class ViewMode(str, Enum):
    ALL_PHASES = "all_phases"
    PHASE_OVERVIEW = "phase_overview"
    FOCUS_AREA_ENTRIES = "focus_area_entries"


@dataclass(frozen=True)
class NavigationState:
    selected_phase_id: Optional[str] = None
    selected_focus_area: Optional[str] = None

    @property
    def mode(self) -> ViewMode:
        if self.selected_phase_id is None:
            return ViewMode.ALL_PHASES
        if self.selected_focus_area is None:
            return ViewMode.PHASE_OVERVIEW
        return ViewMode.FOCUS_AREA_ENTRIES

    def select_phase(self, phase_id: str) -> "NavigationState":
        # focus areas are phase-scoped, so switching phase drops the focus area
        if phase_id == self.selected_phase_id:
            return self
        return NavigationState(selected_phase_id=phase_id)

    def clear_phase(self) -> "NavigationState":
        return NavigationState()

    def select_focus_area(self, focus_area: str) -> "NavigationState":
        if self.selected_phase_id is None:
            raise NavigationError("Select a phase before selecting a focus area")
        return replace(self, selected_focus_area=focus_area)

    def clear_focus_area(self) -> "NavigationState":
        return replace(self, selected_focus_area=None)

    def to_query(self) -> dict:
        query = {}
        if self.selected_phase_id is not None:
            query["phase"] = self.selected_phase_id
            if self.selected_focus_area is not None:
                query["focusArea"] = self.selected_focus_area
        return query

    @classmethod
    def from_query(cls, phase: Optional[str] = None, focus_area: Optional[str] = None) -> "NavigationState":
        """Rebuild from bookmarked selectors; a focus area without a phase is ignored."""
        phase = phase or None
        if phase is None:
            return cls()
        return cls(selected_phase_id=phase, selected_focus_area=focus_area or None)


class PhaseSummary(CamelModel):
    phase: Phase
    stats: PhaseStats


class FocusAreaCard(CamelModel):
    name: str
    stats: FocusAreaStats


class JourneyView(CamelModel):
    mode: ViewMode
    journey: Journey
    progress: JourneyProgress
    phases: list[PhaseSummary]
    selected_phase: Optional[PhaseSummary] = None
    focus_areas: list[FocusAreaCard] = Field(default_factory=list)
    selected_focus_area: Optional[str] = None
    entries: Optional[StatusGroups] = None
    query: dict = Field(default_factory=dict)


def render_view(snapshot: JourneySnapshot, state: NavigationState) -> JourneyView:
    """Recompute the view for `state` from the in-memory snapshot."""
    phases = sorted(snapshot.phases, key=lambda p: p.sort_key)
    summaries = [PhaseSummary(phase=p, stats=compute_phase_stats(p, snapshot.entries)) for p in phases]
    view = JourneyView(
        mode=state.mode,
        journey=snapshot.journey,
        progress=compute_journey_progress(snapshot.journey, phases),
        phases=summaries,
        query=state.to_query(),
    )
    if state.mode == ViewMode.ALL_PHASES:
        return view

    summary = next((s for s in summaries if s.phase.id == state.selected_phase_id), None)
    if summary is None:
        raise NotFoundError("Phase", state.selected_phase_id)
    phase = summary.phase
    phase_entries = snapshot.entries_for(phase.id)
    area_stats = compute_focus_area_stats(phase, phase_entries)

    update = {
        "selected_phase": summary,
        "focus_areas": [FocusAreaCard(name=name, stats=stats) for name, stats in area_stats.items()],
    }
    if state.mode == ViewMode.FOCUS_AREA_ENTRIES:
        if state.selected_focus_area not in phase.focus_areas:
            raise NotFoundError("Focus area", state.selected_focus_area)
        matching = [e for e in phase_entries if e.domain == state.selected_focus_area]
        update["selected_focus_area"] = state.selected_focus_area
        update["entries"] = group_entries_by_status(matching)
    return view.model_copy(update=update)
