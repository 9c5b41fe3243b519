"""Semantic Scholar Graph API client used to look up TL;DR summaries by title."""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from s2tldr.models import CandidatePaper
from s2tldr.settings import Settings

logger = structlog.get_logger(__name__)

FIELDS = "title,abstract,tldr"


class TransportError(RuntimeError):
    """The service could not be reached or answered with something unusable."""


class PaperSearchClient(Protocol):
    """The two title lookups the resolver relies on."""

    async def match_by_title(self, title: str) -> CandidatePaper | None:
        ...

    async def search_by_title(self, title: str, limit: int = 5) -> list[CandidatePaper]:
        ...


# Response schema --------------------------------------------------------------


class _Tldr(BaseModel):
    text: str | None = None


class _Paper(BaseModel):
    title: str | None = None
    abstract: str | None = None
    tldr: _Tldr | None = None

    def to_candidate(self) -> CandidatePaper:
        return CandidatePaper(
            title=self.title,
            abstract=self.abstract,
            tldr_text=self.tldr.text if self.tldr else None,
        )


class _PaperList(BaseModel):
    data: list[_Paper] | None = None


class SemanticScholarClient:
    """Queries the paper search endpoints of the Semantic Scholar Graph API."""

    name = "semantic_scholar"

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def match_by_title(self, title: str) -> CandidatePaper | None:
        logger.debug("s2.match", title=title)
        payload = await self._get(
            "/paper/search/match",
            {"query": title, "fields": FIELDS},
            success_codes=(200, 404),
        )
        if payload is None:
            logger.info("s2.match_missing", title=title)
            return None
        papers = payload.data or []
        return papers[0].to_candidate() if papers else None

    async def search_by_title(self, title: str, limit: int = 5) -> list[CandidatePaper]:
        logger.debug("s2.search", title=title, limit=limit)
        payload = await self._get(
            "/paper/search",
            {"query": title, "fields": FIELDS, "limit": limit},
            success_codes=(200,),
        )
        papers = payload.data if payload else None
        return [paper.to_candidate() for paper in papers or []]

    async def _get(
        self, path: str, params: dict, *, success_codes: tuple[int, ...]
    ) -> _PaperList | None:
        """Fetch and decode ``path``; a non-200 success code yields None."""
        url = f"{self._settings.s2_base_url.rstrip('/')}{path}"
        headers = {}
        if self._settings.s2_api_key:
            headers["x-api-key"] = self._settings.s2_api_key
        try:
            response = await self._client.get(
                url, params=params, headers=headers, timeout=self._settings.request_timeout
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc
        if response.status_code not in success_codes:
            raise TransportError(f"GET {path} returned HTTP {response.status_code}")
        if response.status_code != 200:
            return None
        try:
            return _PaperList.model_validate_json(response.content)
        except ValidationError as exc:
            raise TransportError(f"GET {path} returned a malformed body: {exc}") from exc
