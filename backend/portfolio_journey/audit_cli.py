"""
Command-line journey data audit.

    journey-audit                 audit every journey
    journey-audit --journey aws   audit one journey and its phases
    journey-audit --json          machine-readable report

Exit status: 0 when no errors were found, 1 when the audit reported errors,
2 when the data could not be loaded.
"""
import argparse
import asyncio
import json
import sys
from typing import Optional

from .config import logger
from .exceptions import PortfolioError
from .providers.database import DocumentStore, FirestoreStore, JourneyRepository
from .services.audit import AuditReport, audit_records


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="journey-audit", description="Audit journey phases and entries")
    parser.add_argument("--journey", help="Only audit this journey id")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser.parse_args(argv)


async def run_audit(store: DocumentStore, journey_id: Optional[str] = None) -> AuditReport:
    repo = JourneyRepository(store)
    try:
        journeys, phases, entries = await repo.load_audit_records(journey_id)
    finally:
        await store.close()
    return audit_records(phases, entries, journeys)


def main(argv: Optional[list[str]] = None, store: Optional[DocumentStore] = None) -> int:
    args = parse_args(argv)
    try:
        report = asyncio.run(run_audit(store or FirestoreStore(), args.journey))
    except PortfolioError as e:
        logger.error(f"Audit aborted: {e.message}")
        print(f"Audit failed: {e.message}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(
            {"summary": report.summary(), "findings": [f.to_api() for f in report.findings]},
            indent=2,
        ))
    else:
        print(report.render())
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
