"""Two-phase TL;DR lookup: exact title match first, ranked search second."""

from __future__ import annotations

from typing import Callable, Iterable

import structlog
from sqlalchemy.exc import SQLAlchemyError

from s2tldr.models import CandidatePaper, FetchPhase, FetchResult, Work
from s2tldr.similarity import is_similar
from .library import LibraryError, WorkStore
from .outcomes import OutcomeStore
from .semantic_scholar import PaperSearchClient, TransportError

logger = structlog.get_logger(__name__)

PhaseCallback = Callable[[FetchPhase], None]


class TLDRResolver:
    """Finds a TL;DR for one work and records the outcome.

    A confirmed miss is stored as ``NotFound`` so later runs skip the work;
    transport and storage failures store nothing so the work is retried next time.
    """

    def __init__(
        self,
        client: PaperSearchClient,
        outcomes: OutcomeStore,
        library: WorkStore,
        *,
        search_limit: int = 5,
    ) -> None:
        self._client = client
        self._outcomes = outcomes
        self._library = library
        self._search_limit = search_limit

    async def fetch_tldr(self, work: Work, on_phase: PhaseCallback | None = None) -> FetchResult:
        title = self._library.get_field(work, "title")
        if not title:
            logger.info("resolver.no_title", work=work.key)
            return FetchResult.not_found()
        abstract = self._library.get_field(work, "abstractNote") or None
        try:
            candidate, phase = await self._find_candidate(title, abstract, on_phase)
        except TransportError as exc:
            logger.warning("resolver.transport_error", work=work.key, error=str(exc))
            return FetchResult.error()

        try:
            if candidate is None:
                await self._outcomes.commit_not_found(work.key)
            else:
                await self._outcomes.commit_found(work, candidate.tldr_text)
        except (LibraryError, SQLAlchemyError) as exc:
            logger.warning("resolver.commit_failed", work=work.key, error=str(exc))
            return FetchResult.error()

        if candidate is None:
            logger.info("resolver.not_found", work=work.key)
            return FetchResult.not_found()
        logger.info("resolver.found", work=work.key, phase=phase.value)
        return FetchResult.found(phase)

    async def _find_candidate(
        self, title: str, abstract: str | None, on_phase: PhaseCallback | None
    ) -> tuple[CandidatePaper | None, FetchPhase | None]:
        _signal(on_phase, FetchPhase.MATCH)
        logger.debug("resolver.match", title=title)
        match = await self._client.match_by_title(title)
        if match is not None and match.tldr_text and match.title and is_similar(match.title, title):
            return match, FetchPhase.MATCH

        _signal(on_phase, FetchPhase.SEARCH)
        logger.debug("resolver.search", title=title)
        results = await self._client.search_by_title(title, limit=self._search_limit)
        accepted = select_search_candidate(results, title, abstract)
        if accepted is not None:
            return accepted, FetchPhase.SEARCH
        return None, None


def select_search_candidate(
    candidates: Iterable[CandidatePaper], title: str, abstract: str | None = None
) -> CandidatePaper | None:
    """First candidate with a TL;DR whose title, or failing that abstract, resembles the work's."""
    for candidate in candidates:
        if not candidate.tldr_text:
            continue
        if candidate.title and is_similar(candidate.title, title):
            return candidate
        if candidate.abstract and abstract and is_similar(candidate.abstract, abstract):
            return candidate
    return None


def _signal(on_phase: PhaseCallback | None, phase: FetchPhase) -> None:
    if on_phase is not None:
        on_phase(phase)
