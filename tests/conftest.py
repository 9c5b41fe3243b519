from __future__ import annotations

from dataclasses import dataclass, field

import pytest
import structlog

from s2tldr.models import CandidatePaper
from s2tldr.services.library import WorkLibrary
from s2tldr.services.outcomes import OutcomeStore
from s2tldr.services.semantic_scholar import TransportError
from s2tldr.settings import Settings


@dataclass
class StubSearchClient:
    """In-memory stand-in for the Semantic Scholar client."""

    match: CandidatePaper | None = None
    results: list[CandidatePaper] = field(default_factory=list)
    match_error: bool = False
    search_error: bool = False
    calls: list[tuple[str, str]] = field(default_factory=list)

    async def match_by_title(self, title: str) -> CandidatePaper | None:
        self.calls.append(("match", title))
        if self.match_error:
            raise TransportError("match endpoint unavailable")
        return self.match

    async def search_by_title(self, title: str, limit: int = 5) -> list[CandidatePaper]:
        self.calls.append(("search", title))
        if self.search_error:
            raise TransportError("search endpoint unavailable")
        return self.results[:limit]


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path, pacing_delay=0, add_settle_delay=0)


@pytest.fixture
def library(settings) -> WorkLibrary:
    return WorkLibrary(settings)


@pytest.fixture
def outcomes(library) -> OutcomeStore:
    return OutcomeStore(library.engine, library)
