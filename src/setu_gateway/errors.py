"""
Error kinds raised by setu-gateway.
"""

from dataclasses import dataclass


class SetuError(Exception):
    """Base class for gateway errors."""


@dataclass(frozen=True)
class FieldError:
    """A single field-level schema violation."""

    path: str  # e.g. "price.value"
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class ValidationError(SetuError):
    """Candidate catalog failed one or more schema rules."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors) or "invalid catalog")


class TranslationError(SetuError):
    """The completion capability failed or returned an unusable result."""


class NotFoundError(SetuError):
    """A catalog (or other keyed record) does not exist."""


class PersistenceError(SetuError):
    """A read or write against the store failed."""
