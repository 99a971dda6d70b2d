"""
Derived progress figures for journeys, phases and focus areas.

Every function here is pure: it reads the snapshot it is given and returns a
new value. Stored counters (`totalModules`, `overallProgress`, ...) are never
consulted; the audit reports when they drift.
"""
from collections import Counter
from typing import Iterable

from ..models import CamelModel, Entry, EntryType, Journey, Phase, Status


class JourneyProgress(CamelModel):
    total_phases: int
    completed_phases: int
    overall_progress: int


class PhaseStats(CamelModel):
    total_modules: int
    modules_completed: int
    progress: int


class FocusAreaStats(CamelModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    planned: int = 0


class StatusGroups(CamelModel):
    completed: tuple[Entry, ...] = ()
    in_progress: tuple[Entry, ...] = ()
    planned: tuple[Entry, ...] = ()


def percentage(done: int, total: int) -> int:
    """Integer percentage rounded half up; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    return (200 * done + total) // (2 * total)


def compute_journey_progress(journey: Journey, phases: Iterable[Phase]) -> JourneyProgress:
    own = [p for p in phases if p.journey_id == journey.id]
    completed = sum(1 for p in own if p.status == Status.COMPLETED)
    return JourneyProgress(
        total_phases=len(own),
        completed_phases=completed,
        overall_progress=percentage(completed, len(own)),
    )


def compute_phase_stats(phase: Phase, entries: Iterable[Entry]) -> PhaseStats:
    own = [e for e in entries if e.phase_id == phase.id]
    completed = sum(1 for e in own if e.status == Status.COMPLETED)
    return PhaseStats(
        total_modules=len(own),
        modules_completed=completed,
        progress=percentage(completed, len(own)),
    )


def compute_focus_area_stats(phase: Phase, entries: Iterable[Entry]) -> dict[str, FocusAreaStats]:
    """Per-focus-area status counts, keyed in the phase's focus-area order.

    Entries whose domain is not one of the phase's focus areas are not counted
    anywhere here; the audit reports them.
    """
    counts = {area: Counter() for area in phase.focus_areas}
    for entry in entries:
        if entry.phase_id != phase.id or entry.domain not in counts:
            continue
        counts[entry.domain][entry.status] += 1

    stats = {}
    for area, counter in counts.items():
        stats[area] = FocusAreaStats(
            total=sum(counter.values()),
            completed=counter[Status.COMPLETED],
            in_progress=counter[Status.IN_PROGRESS],
            planned=counter[Status.PLANNED],
        )
    return stats


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Display order: `order` ascending, document id breaks ties. Gaps are not checked here."""
    return sorted(entries, key=lambda e: e.sort_key)


def group_entries_by_status(entries: Iterable[Entry]) -> StatusGroups:
    ordered = sort_entries(entries)
    return StatusGroups(
        completed=tuple(e for e in ordered if e.status == Status.COMPLETED),
        in_progress=tuple(e for e in ordered if e.status == Status.IN_PROGRESS),
        planned=tuple(e for e in ordered if e.status == Status.PLANNED),
    )


def group_entries_by_phase_and_status(phases: Iterable[Phase], entries: Iterable[Entry]) -> dict[str, StatusGroups]:
    """{phase_id: StatusGroups}; entries of unknown phases are left out."""
    by_phase: dict[str, list[Entry]] = {p.id: [] for p in phases}
    for entry in entries:
        if entry.phase_id in by_phase:
            by_phase[entry.phase_id].append(entry)
    return {phase_id: group_entries_by_status(items) for phase_id, items in by_phase.items()}


def count_entries_by_type(entries: Iterable[Entry]) -> dict[str, int]:
    counter = Counter(e.type for e in entries)
    return {t.value: counter[t] for t in EntryType}
