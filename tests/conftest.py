import copy
import itertools
import os

# Limits are per-process counters; keep them out of the way of the API tests
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from portfolio_journey.dependencies import get_store
from portfolio_journey.exceptions import NotFoundError, StoreError
from portfolio_journey.models import Entry, Journey, Phase, Status
from portfolio_journey.providers.database import DocumentStore, JourneyRepository


class InMemoryStore(DocumentStore):
    """Dict-backed DocumentStore supporting `==` filters and single-field ordering."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self.fail_on_delete: set[str] = set()
        self.closed = False
        self._ids = itertools.count(1)

    def seed(self, collection: str, *records: dict) -> list[str]:
        return [self._put(collection, record) for record in records]

    def _put(self, collection: str, record: dict) -> str:
        doc_id = f"doc-{next(self._ids)}"
        self.collections.setdefault(collection, {})[doc_id] = copy.deepcopy(record)
        return doc_id

    def docs(self, collection: str) -> list[dict]:
        return [{**data, "docId": doc_id} for doc_id, data in self.collections.get(collection, {}).items()]

    async def list(self, collection, filters=None, order_by=None):
        records = self.docs(collection)
        for field, op, value in filters or ():
            if op != "==":
                raise ValueError(f"unsupported operator {op}")
            records = [r for r in records if r.get(field) == value]
        if order_by:
            records.sort(key=lambda r: r.get(order_by))
        return copy.deepcopy(records)

    async def get(self, collection, doc_id):
        data = self.collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return {**copy.deepcopy(data), "docId": doc_id}

    async def create(self, collection, record):
        return self._put(collection, record)

    async def update(self, collection, doc_id, partial):
        docs = self.collections.get(collection, {})
        if doc_id not in docs:
            raise NotFoundError("Document", f"{collection}/{doc_id}")
        docs[doc_id].update(copy.deepcopy(partial))

    async def delete(self, collection, doc_id):
        if doc_id in self.fail_on_delete:
            raise StoreError(f"Failed to delete {collection}/{doc_id}: unavailable")
        self.collections.get(collection, {}).pop(doc_id, None)

    async def close(self):
        self.closed = True


# ============================================
# Builders
# ============================================

def journey_record(id="aws", **overrides):
    record = {
        "id": id,
        "title": "AWS Cloud",
        "description": "Cloud engineering track",
        "icon": "cloud",
        "color": "blue",
        "isPublic": True,
        "order": 1,
    }
    record.update(overrides)
    return record


def phase_record(id, focus_areas, order, status="Planned", journey_id="aws", **overrides):
    record = {
        "id": id,
        "journeyId": journey_id,
        "title": id.replace("-", " ").title(),
        "description": "",
        "status": status,
        "focusAreas": list(focus_areas),
        "order": order,
        "isPublic": True,
    }
    record.update(overrides)
    return record


def entry_record(id, phase_id, domain, order, status="Planned", **overrides):
    record = {
        "id": id,
        "phaseId": phase_id,
        "journeyId": "aws",
        "domain": domain,
        "title": id.replace("-", " ").title(),
        "type": "lab",
        "status": status,
        "description": "Hands-on work",
        "techStack": ["AWS"],
        "order": order,
        "isPublic": True,
    }
    record.update(overrides)
    return record


def make_journey(id="aws", **overrides) -> Journey:
    return Journey.model_validate(journey_record(id, **overrides))


def make_phase(id, focus_areas=("Linux",), order=1, status=Status.PLANNED, **overrides) -> Phase:
    return Phase.model_validate(phase_record(id, focus_areas, order, status=Status(status).value, **overrides))


def make_entry(id, phase_id, domain="Linux", order=1, status=Status.PLANNED, **overrides) -> Entry:
    return Entry.model_validate(entry_record(id, phase_id, domain, order, status=Status(status).value, **overrides))


# ============================================
# Fixtures
# ============================================

JOURNEYS = "journeys"
PHASES = "journeyPhases"
ENTRIES = "journeyEntries"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def seeded_store(store):
    """
    aws (public)
      phase-foundations  Completed    Linux, Networking   3 entries, 2 completed
      phase-core         In Progress  Compute, Storage    2 public entries + 1 private draft
      phase-advanced     Planned      Security            no entries
    hidden (private) with no phases
    """
    store.seed(JOURNEYS, journey_record("aws"), journey_record("hidden", title="Hidden", isPublic=False, order=2))
    store.seed(
        PHASES,
        phase_record("phase-foundations", ["Linux", "Networking"], 1, status="Completed", totalModules=3),
        phase_record("phase-core", ["Compute", "Storage"], 2, status="In Progress"),
        phase_record("phase-advanced", ["Security"], 3),
    )
    store.seed(
        ENTRIES,
        entry_record("entry-shell", "phase-foundations", "Linux", 1, status="Completed"),
        entry_record("entry-permissions", "phase-foundations", "Linux", 2, status="Completed"),
        entry_record("entry-subnets", "phase-foundations", "Networking", 3, status="In Progress"),
        entry_record("entry-ec2", "phase-core", "Compute", 1, status="Completed"),
        entry_record("entry-lambda", "phase-core", "Compute", 2),
        entry_record("entry-draft", "phase-core", "Storage", 3, isPublic=False),
    )
    return store


@pytest.fixture
def repo(seeded_store):
    return JourneyRepository(seeded_store)


@pytest.fixture
def client(seeded_store):
    from index import app

    app.dependency_overrides[get_store] = lambda: seeded_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
