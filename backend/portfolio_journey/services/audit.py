"""
Offline consistency audit for journey data.

Reads full snapshots of phases and entries and reports what is wrong with them
without touching the store. Nothing in here raises on bad data: broken records
become findings.
"""
from collections import defaultdict
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import Field, ValidationError

from ..models import CamelModel, Entry, Journey, Phase, Status


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingKind(str, Enum):
    DUPLICATE_ENTRY_ID = "duplicate_entry_id"
    DOMAIN_MISMATCH = "domain_mismatch"
    TOTAL_MODULES_MISMATCH = "total_modules_mismatch"
    NON_SEQUENTIAL_ORDER = "non_sequential_order"
    EMPTY_FOCUS_AREA = "empty_focus_area"
    ORPHAN_ENTRY = "orphan_entry"
    ORPHAN_PHASE = "orphan_phase"
    PHASE_STATUS_DISTRIBUTION = "phase_status_distribution"
    INVALID_RECORD = "invalid_record"


class Finding(CamelModel):
    kind: FindingKind
    severity: Severity
    message: str
    ids: tuple[str, ...] = ()
    details: dict[str, Any] = Field(default_factory=dict)


class AuditReport(CamelModel):
    phase_count: int = 0
    entry_count: int = 0
    findings: list[Finding] = Field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def of_kind(self, kind: FindingKind) -> list[Finding]:
        return [f for f in self.findings if f.kind == kind]

    def summary(self) -> dict:
        return {
            "phases": self.phase_count,
            "entries": self.entry_count,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "ok": self.ok,
        }

    def render(self) -> str:
        lines = [
            "JOURNEY DATA AUDIT",
            f"Phases: {self.phase_count}",
            f"Entries: {self.entry_count}",
            "",
        ]
        if not self.errors:
            lines.append("No errors found")
        else:
            lines.append(f"{len(self.errors)} errors found:")
            lines.extend(f"  - {f.message}" for f in self.errors)
        if not self.warnings:
            lines.append("No warnings found")
        else:
            lines.append(f"{len(self.warnings)} warnings found:")
            lines.extend(f"  - {f.message}" for f in self.warnings)
        return "\n".join(lines)


def _error(kind: FindingKind, message: str, ids: Iterable[str] = (), **details) -> Finding:
    return Finding(kind=kind, severity=Severity.ERROR, message=message, ids=tuple(ids), details=details)


def _warning(kind: FindingKind, message: str, ids: Iterable[str] = (), **details) -> Finding:
    return Finding(kind=kind, severity=Severity.WARNING, message=message, ids=tuple(ids), details=details)


def _check_duplicate_ids(entries: list[Entry]) -> list[Finding]:
    seen = set()
    reported = []
    for entry in entries:
        if entry.id in seen and entry.id not in reported:
            reported.append(entry.id)
        seen.add(entry.id)
    findings = []
    for entry_id in reported:
        doc_ids = [e.doc_id for e in entries if e.id == entry_id and e.doc_id]
        findings.append(_error(
            FindingKind.DUPLICATE_ENTRY_ID,
            f'Duplicate entry ID: "{entry_id}"',
            [entry_id],
            doc_ids=doc_ids,
        ))
    return findings


def _check_references(phases_by_id: dict[str, Phase], entries: list[Entry]) -> list[Finding]:
    findings = []
    for entry in entries:
        phase = phases_by_id.get(entry.phase_id)
        if phase is None:
            findings.append(_error(
                FindingKind.ORPHAN_ENTRY,
                f'Entry "{entry.id}" references unknown phase "{entry.phase_id}"',
                [entry.id],
                phase_id=entry.phase_id,
            ))
            continue
        if entry.domain not in phase.focus_areas:
            allowed = list(phase.focus_areas)
            findings.append(_error(
                FindingKind.DOMAIN_MISMATCH,
                f'Entry "{entry.id}" domain "{entry.domain}" not in phase "{phase.id}" '
                f'focusAreas: [{", ".join(allowed)}]',
                [entry.id],
                phase_id=phase.id,
                domain=entry.domain,
                allowed=allowed,
            ))
    return findings


def _check_cached_counts(phases: list[Phase], entries_by_phase: dict[str, list[Entry]]) -> list[Finding]:
    findings = []
    for phase in phases:
        # phases without a stored counter have nothing to drift from
        if phase.total_modules is None:
            continue
        count = len(entries_by_phase.get(phase.id, []))
        if phase.total_modules != count:
            findings.append(_warning(
                FindingKind.TOTAL_MODULES_MISMATCH,
                f'Phase "{phase.id}" totalModules={phase.total_modules} but entries={count}',
                [phase.id],
                stored=phase.total_modules,
                actual=count,
            ))
    return findings


def _check_order_sequences(entries_by_phase: dict[str, list[Entry]]) -> list[Finding]:
    findings = []
    for phase_id, items in entries_by_phase.items():
        orders = sorted(e.order for e in items)
        if orders != list(range(1, len(items) + 1)):
            findings.append(_error(
                FindingKind.NON_SEQUENTIAL_ORDER,
                f'Phase "{phase_id}" has non-sequential orders: {", ".join(str(o) for o in orders)}',
                [phase_id],
                orders=orders,
            ))
    return findings


def _check_focus_area_coverage(phases: list[Phase], entries_by_phase: dict[str, list[Entry]]) -> list[Finding]:
    findings = []
    for phase in phases:
        domains = {e.domain for e in entries_by_phase.get(phase.id, [])}
        for area in phase.focus_areas:
            if area not in domains:
                findings.append(_warning(
                    FindingKind.EMPTY_FOCUS_AREA,
                    f'Phase "{phase.id}" focusArea "{area}" has 0 entries',
                    [phase.id],
                    focus_area=area,
                ))
    return findings


def _check_journey_links(phases: list[Phase], journeys: list[Journey]) -> list[Finding]:
    known = {j.id for j in journeys}
    return [
        _error(
            FindingKind.ORPHAN_PHASE,
            f'Phase "{p.id}" references unknown journey "{p.journey_id}"',
            [p.id],
            journey_id=p.journey_id,
        )
        for p in phases
        if p.journey_id not in known
    ]


def _check_status_distribution(phases: list[Phase]) -> list[Finding]:
    by_journey: dict[str, list[Phase]] = defaultdict(list)
    for phase in phases:
        by_journey[phase.journey_id].append(phase)

    findings = []
    for journey_id, items in by_journey.items():
        active = [p.id for p in items if p.status == Status.IN_PROGRESS]
        if len(active) > 1:
            findings.append(_warning(
                FindingKind.PHASE_STATUS_DISTRIBUTION,
                f'Journey "{journey_id}" has multiple phases ({len(active)}) marked as "In Progress"',
                active,
                journey_id=journey_id,
            ))
        elif not active and any(p.status != Status.COMPLETED for p in items):
            findings.append(_warning(
                FindingKind.PHASE_STATUS_DISTRIBUTION,
                f'Journey "{journey_id}" has no phase marked as "In Progress"',
                [p.id for p in items],
                journey_id=journey_id,
            ))
    return findings


def audit_journey(
    phases: Iterable[Phase],
    entries: Iterable[Entry],
    journeys: Optional[Iterable[Journey]] = None,
) -> AuditReport:
    """Check phases and entries for the invariants the read path does not enforce.

    Errors: duplicate entry ids, entries whose domain is outside their phase's
    focus areas (or whose phase does not exist), order values that are not
    exactly 1..N within a phase, and, when `journeys` is given, phases whose
    journey does not exist.

    Warnings: a stored `totalModules` that disagrees with the live entry count,
    focus areas with no entries, and journeys with zero or several phases
    in progress.
    """
    phases = list(phases)
    entries = list(entries)

    phases_by_id = {p.id: p for p in phases}
    entries_by_phase: dict[str, list[Entry]] = defaultdict(list)
    for entry in entries:
        entries_by_phase[entry.phase_id].append(entry)

    findings = []
    findings.extend(_check_duplicate_ids(entries))
    findings.extend(_check_references(phases_by_id, entries))
    findings.extend(_check_cached_counts(phases, entries_by_phase))
    findings.extend(_check_order_sequences(entries_by_phase))
    findings.extend(_check_focus_area_coverage(phases, entries_by_phase))
    if journeys is not None:
        findings.extend(_check_journey_links(phases, list(journeys)))
    findings.extend(_check_status_distribution(phases))

    return AuditReport(phase_count=len(phases), entry_count=len(entries), findings=findings)


def audit_records(
    phase_records: Iterable[dict],
    entry_records: Iterable[dict],
    journey_records: Optional[Iterable[dict]] = None,
) -> AuditReport:
    """Audit raw store documents; documents that fail validation are reported, not raised."""
    invalid = []

    def parse(model, records, label):
        parsed = []
        for record in records:
            try:
                parsed.append(model.model_validate(record))
            except ValidationError as e:
                ident = str(record.get("id") or record.get("docId") or "?")
                fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
                invalid.append(_error(
                    FindingKind.INVALID_RECORD,
                    f'{label} "{ident}" failed validation: {", ".join(fields)}',
                    [ident],
                    fields=fields,
                ))
        return parsed

    phase_records = list(phase_records)
    entry_records = list(entry_records)
    phases = parse(Phase, phase_records, "Phase")
    entries = parse(Entry, entry_records, "Entry")
    journeys = parse(Journey, journey_records, "Journey") if journey_records is not None else None

    report = audit_journey(phases, entries, journeys)
    return AuditReport(
        phase_count=len(phase_records),
        entry_count=len(entry_records),
        findings=invalid + report.findings,
    )
