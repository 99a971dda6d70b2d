"""
Typed failures raised by the repository, store and navigation layers.
index.py maps each one to an HTTP status; callers outside HTTP catch them directly.
"""
from typing import Optional


class PortfolioError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"status": "error", "message": self.message}


class NotFoundError(PortfolioError):
    """Requested journey, phase or entry does not exist."""

    status_code = 404

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class PayloadValidationError(PortfolioError):
    """Write payload rejected before reaching the store."""

    status_code = 422

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NavigationError(PortfolioError):
    """Invalid drill-down transition (e.g. focus area without a phase)."""

    status_code = 400


class DependentsExistError(PortfolioError):
    """Delete refused because child records still reference the target."""

    status_code = 409

    def __init__(self, kind: str, identifier: str, dependents: list[str]):
        super().__init__(
            f"{kind} '{identifier}' has {len(dependents)} dependent record(s); "
            f"delete them first or pass cascade=true"
        )
        self.dependents = dependents

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["dependents"] = self.dependents
        return data


class PartialDeleteError(PortfolioError):
    """A multi-document delete failed midway, leaving orphaned records."""

    status_code = 500

    def __init__(self, message: str, deleted: list[str], remaining: list[str]):
        super().__init__(message)
        self.deleted = deleted
        self.remaining = remaining

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["deleted"] = self.deleted
        data["remaining"] = self.remaining
        return data


class StoreError(PortfolioError):
    """Document store could not complete an operation."""

    status_code = 502
