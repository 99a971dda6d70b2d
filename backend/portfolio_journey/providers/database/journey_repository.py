"""
Journey repository.
CRUD for journeys, phases and entries by their external `id`, on top of a
DocumentStore. Payloads are validated before any store call; multi-document
deletes are never atomic and report exactly what was and was not deleted.
"""
import asyncio
from datetime import datetime, timezone
from typing import Iterable, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from ...config import settings, logger
from ...exceptions import (
    DependentsExistError,
    NotFoundError,
    PartialDeleteError,
    PayloadValidationError,
    StoreError,
)
from ...models import (
    CamelModel,
    Entry,
    EntryCreate,
    EntryUpdate,
    Journey,
    JourneyCreate,
    JourneySnapshot,
    JourneyUpdate,
    Phase,
    PhaseCreate,
    PhaseUpdate,
    Record,
    Status,
    generate_id,
)
from .store import DocumentStore

M = TypeVar("M", bound=BaseModel)


class BulkResult(CamelModel):
    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _clean_errors(e: ValidationError) -> list[dict]:
    return [
        {"loc": [str(p) for p in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in e.errors()
    ]


def validate_payload(model: Type[M], data) -> M:
    """Validate `data` into `model`, turning pydantic errors into PayloadValidationError."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = _clean_errors(e)
        fields = ", ".join(".".join(err["loc"]) for err in errors)
        raise PayloadValidationError(f"Invalid {model.__name__} payload: {fields}", errors)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JourneyRepository:
    """Document-store access for the journey domain."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.journeys_collection = settings.JOURNEYS_COLLECTION
        self.phases_collection = settings.PHASES_COLLECTION
        self.entries_collection = settings.ENTRIES_COLLECTION

    # --- Internal helpers ---
    def _parse(self, model: Type[M], records: Iterable[dict]) -> list[M]:
        """Parse store records, skipping (and logging) documents that fail validation."""
        parsed = []
        for record in records:
            try:
                parsed.append(model.model_validate(record))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid {model.__name__} document {record.get('docId')}: "
                    f"{len(e.errors())} validation error(s)"
                )
        return sorted(parsed, key=lambda r: r.sort_key)

    async def _find(self, collection: str, model: Type[M], kind: str, ident: str, public_only: bool = False) -> M:
        filters = [("id", "==", ident)]
        if public_only:
            filters.append(("isPublic", "==", True))
        records = await self.store.list(collection, filters)
        if not records:
            raise NotFoundError(kind, ident)
        if len(records) > 1:
            logger.warning(f"{kind} id '{ident}' matches {len(records)} documents, using the first by order")
            records = sorted(records, key=lambda r: (r.get("order") or 0, r.get("docId") or ""))
        try:
            return model.model_validate(records[0])
        except ValidationError as e:
            logger.error(f"Stored {kind} '{ident}' is invalid: {e}")
            raise StoreError(f"Stored {kind} '{ident}' failed validation")

    async def _ensure_unique(self, collection: str, kind: str, ident: str) -> None:
        if await self.store.list(collection, [("id", "==", ident)]):
            raise PayloadValidationError(f"{kind} id '{ident}' already exists")

    async def _insert(self, collection: str, record: Record) -> Record:
        now = _now()
        data = record.to_store()
        data["createdAt"] = now
        data["updatedAt"] = now
        doc_id = await self.store.create(collection, data)
        logger.info(f"Created {type(record).__name__} '{record.id}' ({collection}/{doc_id})")
        return record.model_copy(update={"doc_id": doc_id, "created_at": now, "updated_at": now})

    async def _apply_update(self, collection: str, current: Record, patch, rules: Type[BaseModel]) -> Record:
        """Merge `patch` into `current` and write the changed fields.

        The merged record must still satisfy the create payload `rules` for every
        changed field, so an update cannot blank out what a create requires.
        """
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            return current
        model = type(current)
        merged = validate_payload(model, {**current.model_dump(), **changes})
        stored = merged.to_store()
        try:
            rules.model_validate(stored)
        except ValidationError as e:
            changed = {to_camel(name) for name in changes}
            errors = [err for err in _clean_errors(e) if err["loc"] and err["loc"][0] in changed]
            if errors:
                fields = ", ".join(".".join(err["loc"]) for err in errors)
                raise PayloadValidationError(f"Invalid {model.__name__} update: {fields}", errors)
        partial = {to_camel(name): stored[to_camel(name)] for name in changes}
        now = _now()
        partial["updatedAt"] = now
        await self.store.update(collection, current.doc_id, partial)
        logger.info(f"Updated {model.__name__} '{current.id}': {', '.join(sorted(partial))}")
        return merged.model_copy(update={"updated_at": now})

    async def _delete_in_order(self, targets: list[tuple[str, str, str]], label: str) -> list[str]:
        """Delete (collection, doc_id, id) targets one by one; a failure midway raises PartialDeleteError."""
        deleted = []
        for index, (collection, doc_id, ident) in enumerate(targets):
            try:
                await self.store.delete(collection, doc_id)
            except Exception as e:
                if not deleted:
                    raise
                remaining = [t[2] for t in targets[index:]]
                logger.error(
                    f"Deleting {label} failed after {len(deleted)}/{len(targets)} documents; "
                    f"orphaned: {', '.join(remaining)}"
                )
                raise PartialDeleteError(
                    f"Deleting {label} failed after {len(deleted)} of {len(targets)} documents: {e}",
                    deleted=deleted,
                    remaining=remaining,
                ) from e
            deleted.append(ident)
        logger.info(f"Deleted {label} ({len(deleted)} documents)")
        return deleted

    @staticmethod
    def _target(collection: str, record: dict) -> tuple[str, str, str]:
        return (collection, record["docId"], str(record.get("id") or record["docId"]))

    # --- Journeys ---
    async def list_journeys(self, public_only: bool = True) -> list[Journey]:
        filters = [("isPublic", "==", True)] if public_only else None
        records = await self.store.list(self.journeys_collection, filters)
        return self._parse(Journey, records)

    async def get_journey(self, journey_id: str, public_only: bool = False) -> Journey:
        return await self._find(self.journeys_collection, Journey, "Journey", journey_id, public_only)

    async def create_journey(self, payload: Union[JourneyCreate, dict]) -> Journey:
        payload = validate_payload(JourneyCreate, payload)
        data = payload.model_dump(exclude={"id"})
        journey = validate_payload(Journey, {**data, "id": payload.id or generate_id("journey", payload.title)})
        await self._ensure_unique(self.journeys_collection, "Journey", journey.id)
        return await self._insert(self.journeys_collection, journey)

    async def update_journey(self, journey_id: str, patch: Union[JourneyUpdate, dict]) -> Journey:
        patch = validate_payload(JourneyUpdate, patch)
        current = await self.get_journey(journey_id)
        return await self._apply_update(self.journeys_collection, current, patch, JourneyCreate)

    async def delete_journey(self, journey_id: str, cascade: bool = False) -> list[str]:
        """Delete a journey; with `cascade`, its phases and their entries go first."""
        journey = await self.get_journey(journey_id)
        phases = await self.store.list(self.phases_collection, [("journeyId", "==", journey.id)])
        entries = []
        for phase in phases:
            if phase.get("id"):
                entries.extend(await self.store.list(self.entries_collection, [("phaseId", "==", phase["id"])]))

        if (phases or entries) and not cascade:
            dependents = [str(r.get("id") or r["docId"]) for r in phases + entries]
            raise DependentsExistError("Journey", journey.id, dependents)

        targets = [self._target(self.entries_collection, r) for r in entries]
        targets += [self._target(self.phases_collection, r) for r in phases]
        targets.append((self.journeys_collection, journey.doc_id, journey.id))
        return await self._delete_in_order(targets, f"journey '{journey.id}'")

    # --- Phases ---
    async def list_phases(self, journey_id: Optional[str] = None, public_only: bool = False) -> list[Phase]:
        filters = []
        if journey_id is not None:
            filters.append(("journeyId", "==", journey_id))
        if public_only:
            filters.append(("isPublic", "==", True))
        records = await self.store.list(self.phases_collection, filters or None)
        return self._parse(Phase, records)

    async def get_phase(self, phase_id: str) -> Phase:
        return await self._find(self.phases_collection, Phase, "Phase", phase_id)

    async def create_phase(self, payload: Union[PhaseCreate, dict]) -> Phase:
        payload = validate_payload(PhaseCreate, payload)
        data = payload.model_dump(exclude={"id"})
        phase = validate_payload(Phase, {**data, "id": payload.id or generate_id("phase", payload.title)})
        await self._ensure_unique(self.phases_collection, "Phase", phase.id)
        return await self._insert(self.phases_collection, phase)

    async def update_phase(self, phase_id: str, patch: Union[PhaseUpdate, dict]) -> Phase:
        patch = validate_payload(PhaseUpdate, patch)
        current = await self.get_phase(phase_id)
        return await self._apply_update(self.phases_collection, current, patch, PhaseCreate)

    async def delete_phase(self, phase_id: str, cascade: bool = False) -> list[str]:
        """Delete a phase; with `cascade`, its entries are deleted first."""
        phase = await self.get_phase(phase_id)
        entries = await self.store.list(self.entries_collection, [("phaseId", "==", phase.id)])
        if entries and not cascade:
            raise DependentsExistError("Phase", phase.id, [str(r.get("id") or r["docId"]) for r in entries])

        targets = [self._target(self.entries_collection, r) for r in entries]
        targets.append((self.phases_collection, phase.doc_id, phase.id))
        return await self._delete_in_order(targets, f"phase '{phase.id}'")

    # --- Entries ---
    async def list_entries(self, phase_id: Optional[str] = None, public_only: bool = False) -> list[Entry]:
        filters = []
        if phase_id is not None:
            filters.append(("phaseId", "==", phase_id))
        if public_only:
            filters.append(("isPublic", "==", True))
        records = await self.store.list(self.entries_collection, filters or None)
        return self._parse(Entry, records)

    async def get_entry(self, entry_id: str) -> Entry:
        return await self._find(self.entries_collection, Entry, "Entry", entry_id)

    async def create_entry(self, payload: Union[EntryCreate, dict]) -> Entry:
        payload = validate_payload(EntryCreate, payload)
        data = payload.model_dump(exclude={"id"})
        entry = validate_payload(Entry, {**data, "id": payload.id or generate_id("entry", payload.title)})
        await self._ensure_unique(self.entries_collection, "Entry", entry.id)
        return await self._insert(self.entries_collection, entry)

    async def update_entry(self, entry_id: str, patch: Union[EntryUpdate, dict]) -> Entry:
        patch = validate_payload(EntryUpdate, patch)
        current = await self.get_entry(entry_id)
        return await self._apply_update(self.entries_collection, current, patch, EntryCreate)

    async def delete_entry(self, entry_id: str) -> None:
        entry = await self.get_entry(entry_id)
        await self.store.delete(self.entries_collection, entry.doc_id)
        logger.info(f"Deleted Entry '{entry.id}'")

    async def bulk_update_status(self, entry_ids: list[str], status: Status) -> BulkResult:
        result = BulkResult()
        for entry_id in entry_ids:
            try:
                await self.update_entry(entry_id, EntryUpdate(status=status))
                result.succeeded.append(entry_id)
            except Exception as e:
                logger.error(f"Bulk status update failed for entry '{entry_id}': {e}")
                result.failed[entry_id] = str(e)
        return result

    async def bulk_delete(self, entry_ids: list[str]) -> BulkResult:
        result = BulkResult()
        for entry_id in entry_ids:
            try:
                await self.delete_entry(entry_id)
                result.succeeded.append(entry_id)
            except Exception as e:
                logger.error(f"Bulk delete failed for entry '{entry_id}': {e}")
                result.failed[entry_id] = str(e)
        return result

    # --- Snapshots ---
    async def load_snapshot(self, journey_id: str, public_only: bool = True) -> JourneySnapshot:
        """Load a journey with all its phases and entries in one pass."""
        journey = await self.get_journey(journey_id, public_only=public_only)
        phases = await self.list_phases(journey.id, public_only=public_only)
        per_phase = await asyncio.gather(
            *(self.list_entries(phase.id, public_only=public_only) for phase in phases)
        )
        entries = [entry for items in per_phase for entry in items]
        return JourneySnapshot(journey=journey, phases=tuple(phases), entries=tuple(entries))

    async def load_audit_records(self, journey_id: Optional[str] = None) -> tuple[list[dict], list[dict], list[dict]]:
        """Raw (journeys, phases, entries) documents, unvalidated, for the audit."""
        if journey_id is None:
            journeys, phases, entries = await asyncio.gather(
                self.store.list(self.journeys_collection),
                self.store.list(self.phases_collection),
                self.store.list(self.entries_collection),
            )
            return journeys, phases, entries

        journeys = await self.store.list(self.journeys_collection, [("id", "==", journey_id)])
        if not journeys:
            raise NotFoundError("Journey", journey_id)
        phases = await self.store.list(self.phases_collection, [("journeyId", "==", journey_id)])
        entries = []
        for phase in phases:
            if phase.get("id"):
                entries.extend(await self.store.list(self.entries_collection, [("phaseId", "==", phase["id"])]))
        return journeys, phases, entries
