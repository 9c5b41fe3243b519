"""Core data models used throughout the s2tldr application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field

from s2tldr.utils import utcnow


class Work(BaseModel):
    """A bibliographic entry held by the work library."""

    key: str
    title: str = ""
    abstract: str | None = None


class CandidatePaper(BaseModel):
    """A paper returned by the metadata service for a title query."""

    title: str | None = None
    abstract: str | None = None
    tldr_text: str | None = None


class Note(BaseModel):
    """A child note attached to a work."""

    key: str
    parent_key: str
    body: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FetchStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class FetchPhase(str, Enum):
    MATCH = "match"
    SEARCH = "search"


class FetchResult(BaseModel):
    """Outcome of a single resolution attempt."""

    status: FetchStatus
    phase: FetchPhase | None = None

    @classmethod
    def found(cls, phase: FetchPhase) -> "FetchResult":
        return cls(status=FetchStatus.FOUND, phase=phase)

    @classmethod
    def not_found(cls) -> "FetchResult":
        return cls(status=FetchStatus.NOT_FOUND)

    @classmethod
    def error(cls) -> "FetchResult":
        return cls(status=FetchStatus.ERROR)


# Persisted outcomes ---------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Unresolved:
    kind = "unresolved"


@dataclass(frozen=True, slots=True)
class Resolved:
    note_key: str
    kind = "resolved"


@dataclass(frozen=True, slots=True)
class NotFound:
    kind = "not_found"


ResolutionOutcome = Union[Unresolved, Resolved, NotFound]


@dataclass(slots=True)
class BatchSummary:
    """Counts collected while draining a work queue."""

    succeeded: int = 0
    failed: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed
