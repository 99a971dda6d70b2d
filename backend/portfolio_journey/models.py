"""
Journey domain model.

Journeys own phases through `journeyId`, phases own entries through `phaseId`.
Both links are lookup keys only: the store does not enforce them, the audit
and the delete cascade in the repository do.
"""
import re
import time
from datetime import datetime
from enum import Enum
from typing import Annotated, NewType, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

JourneyId = NewType("JourneyId", str)
PhaseId = NewType("PhaseId", str)
EntryId = NewType("EntryId", str)
DocId = NewType("DocId", str)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]


class Status(str, Enum):
    PLANNED = "Planned"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class EntryType(str, Enum):
    PROJECT = "project"
    LAB = "lab"
    CERTIFICATION = "certification"
    EXERCISE = "exercise"
    NOTE = "note"


class JourneyIcon(str, Enum):
    CLOUD = "cloud"
    CODE = "code"
    SHIELD = "shield"
    DATABASE = "database"
    GLOBE = "globe"
    CPU = "cpu"


class JourneyColor(str, Enum):
    BLUE = "blue"
    PURPLE = "purple"
    RED = "red"
    GREEN = "green"


class CamelModel(BaseModel):
    """Base for everything persisted or returned: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def _clean_labels(values) -> tuple:
    """Trim, drop blanks and de-duplicate while keeping first-seen order."""
    if values is None:
        return ()
    if isinstance(values, str):
        raise ValueError("must be a list of strings")
    seen = []
    for value in values:
        if not isinstance(value, str):
            raise ValueError("must be a list of strings")
        label = value.strip()
        if label and label not in seen:
            seen.append(label)
    return tuple(seen)


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


LabelTuple = Annotated[tuple[str, ...], BeforeValidator(_clean_labels)]
OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]


# ============================================
# Entities
# ============================================

class Record(CamelModel):
    model_config = ConfigDict(frozen=True)

    doc_id: Optional[DocId] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_store(self) -> dict:
        """Serialize for the document store; timestamps are owned by the repository."""
        return self.model_dump(mode="json", by_alias=True, exclude={"doc_id", "created_at", "updated_at"})

    @property
    def sort_key(self) -> tuple:
        return (getattr(self, "order", 0), self.doc_id or "")


class Journey(Record):
    """Top-level learning track. Progress figures are derived, never read from storage."""

    id: JourneyId
    title: NonEmptyStr
    description: TrimmedStr = ""
    icon: JourneyIcon = JourneyIcon.CODE
    color: JourneyColor = JourneyColor.BLUE
    is_public: bool = True
    order: int = Field(0, ge=0)


class Phase(Record):
    """Ordered stage of a journey; `total_modules` is a stored cache and may drift."""

    id: PhaseId
    journey_id: JourneyId
    title: NonEmptyStr
    description: TrimmedStr = ""
    status: Status = Status.PLANNED
    focus_areas: LabelTuple = ()
    order: int = Field(0, ge=0)
    is_public: bool = True
    total_modules: Optional[int] = Field(None, ge=0)


class Link(CamelModel):
    model_config = ConfigDict(frozen=True)

    label: NonEmptyStr
    url: NonEmptyStr


class Artifact(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: NonEmptyStr
    url: NonEmptyStr


class Entry(Record):
    """Single learning artifact inside one phase and one focus area (`domain`)."""

    id: EntryId
    phase_id: PhaseId
    journey_id: Optional[JourneyId] = None
    domain: NonEmptyStr
    title: NonEmptyStr
    type: EntryType
    status: Status = Status.PLANNED
    description: TrimmedStr = ""
    tech_stack: LabelTuple = ()
    order: int = Field(0, ge=0)
    is_public: bool = True
    github_link: OptionalText = None
    # certification fields
    issuer: OptionalText = None
    issue_date: OptionalText = None
    credential_link: OptionalText = None
    certificate_image: OptionalText = None
    links: tuple[Link, ...] = ()
    artifacts: tuple[Artifact, ...] = ()


class JourneySnapshot(BaseModel):
    """Everything the detail view needs, loaded once before navigation starts."""

    model_config = ConfigDict(frozen=True)

    journey: Journey
    phases: tuple[Phase, ...] = ()
    entries: tuple[Entry, ...] = ()

    def phase(self, phase_id: str) -> Optional[Phase]:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def entries_for(self, phase_id: str) -> tuple[Entry, ...]:
        return tuple(e for e in self.entries if e.phase_id == phase_id)


# ============================================
# Write payloads
# ============================================

class JourneyCreate(CamelModel):
    id: Optional[NonEmptyStr] = None
    title: NonEmptyStr
    description: NonEmptyStr
    icon: JourneyIcon
    color: JourneyColor
    is_public: bool
    order: int = Field(..., ge=0)


class JourneyUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[JourneyIcon] = None
    color: Optional[JourneyColor] = None
    is_public: Optional[bool] = None
    order: Optional[int] = None


class PhaseCreate(CamelModel):
    id: Optional[NonEmptyStr] = None
    journey_id: NonEmptyStr
    title: NonEmptyStr
    description: TrimmedStr = ""
    status: Status
    focus_areas: LabelTuple = Field(..., min_length=1)
    order: int = Field(..., ge=0)
    is_public: bool = True
    total_modules: Optional[int] = Field(None, ge=0)


class PhaseUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[Status] = None
    focus_areas: Optional[list[str]] = None
    order: Optional[int] = None
    is_public: Optional[bool] = None
    total_modules: Optional[int] = None


class EntryCreate(CamelModel):
    id: Optional[NonEmptyStr] = None
    phase_id: NonEmptyStr
    journey_id: Optional[str] = None
    domain: NonEmptyStr
    title: NonEmptyStr
    type: EntryType
    status: Status
    description: NonEmptyStr
    tech_stack: LabelTuple = Field(..., min_length=1)
    order: int = Field(..., ge=0)
    is_public: bool
    github_link: OptionalText = None
    issuer: OptionalText = None
    issue_date: OptionalText = None
    credential_link: OptionalText = None
    certificate_image: OptionalText = None
    links: list[Link] = Field(default_factory=list)
    artifacts: list[Artifact] = Field(default_factory=list)


class EntryUpdate(CamelModel):
    phase_id: Optional[str] = None
    journey_id: Optional[str] = None
    domain: Optional[str] = None
    title: Optional[str] = None
    type: Optional[EntryType] = None
    status: Optional[Status] = None
    description: Optional[str] = None
    tech_stack: Optional[list[str]] = None
    order: Optional[int] = None
    is_public: Optional[bool] = None
    github_link: Optional[str] = None
    issuer: Optional[str] = None
    issue_date: Optional[str] = None
    credential_link: Optional[str] = None
    certificate_image: Optional[str] = None
    links: Optional[list[Link]] = None
    artifacts: Optional[list[Artifact]] = None


def generate_id(prefix: str, title: str) -> str:
    """Slug id from a title, e.g. ('entry', 'Linux Basics') -> 'entry-linux-basics'."""
    slug = re.sub(r"\s+", "-", title.strip().lower())
    slug = re.sub(r"[^\w-]", "", slug)
    if not slug:
        slug = str(int(time.time() * 1000))
    return f"{prefix}-{slug}"
