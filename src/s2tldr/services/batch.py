"""Sequential batch driver that runs the resolver over a queue of works."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Sequence

import structlog

from s2tldr.models import BatchSummary, FetchPhase, FetchResult, FetchStatus, Unresolved, Work
from .outcomes import OutcomeStore
from .resolver import TLDRResolver

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class BatchEvent:
    """Progress notification emitted while a queue is processed.

    ``kind`` is one of ``started``, ``phase``, ``completed`` or ``finished``;
    ``done`` counts works fully processed when the event was emitted.
    """

    kind: str
    done: int
    total: int
    succeeded: int
    failed: int
    work: Work | None = None
    phase: FetchPhase | None = None
    result: FetchResult | None = None

    @property
    def waiting(self) -> int:
        return self.total - self.done

    @property
    def progress(self) -> float:
        if self.total == 0:
            return 100.0
        return self.done * 100 / self.total


EventCallback = Callable[[BatchEvent], None]


class BatchOrchestrator:
    """Resolves works one at a time, pausing between them."""

    def __init__(
        self,
        resolver: TLDRResolver,
        outcomes: OutcomeStore,
        *,
        pacing_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._resolver = resolver
        self._outcomes = outcomes
        self._pacing_delay = pacing_delay
        self._sleep = sleep

    async def select_pending(self, works: Iterable[Work], *, force: bool = False) -> list[Work]:
        """Drop untitled works and, unless ``force``, works that already have an outcome."""
        known = {} if force else await self._outcomes.snapshot()
        pending = []
        for work in works:
            if not work.title:
                continue
            if not isinstance(known.get(work.key, Unresolved()), Unresolved):
                continue
            pending.append(work)
        return pending

    async def process_queue(
        self,
        works: Sequence[Work],
        *,
        on_event: EventCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> BatchSummary:
        summary = BatchSummary()
        total = len(works)

        def emit(kind: str, done: int, **extra) -> None:
            if on_event is not None:
                on_event(BatchEvent(kind, done, total, summary.succeeded, summary.failed, **extra))

        logger.info("batch.start", total=total)
        done = 0
        for work in works:
            if should_stop is not None and should_stop():
                logger.info("batch.stopped", processed=done, total=total)
                break
            emit("started", done, work=work)

            def report_phase(phase: FetchPhase, work: Work = work, done: int = done) -> None:
                emit("phase", done, work=work, phase=phase)

            try:
                result = await self._resolver.fetch_tldr(work, on_phase=report_phase)
            except Exception as exc:
                logger.exception("batch.item_failed", work=work.key, error=str(exc))
                result = FetchResult.error()
            if result.status is FetchStatus.FOUND:
                summary.succeeded += 1
            else:
                summary.failed += 1
                if result.status is FetchStatus.ERROR:
                    summary.errors += 1
            done += 1
            emit("completed", done, work=work, result=result)
            await self._sleep(self._pacing_delay)

        emit("finished", done)
        logger.info(
            "batch.finished",
            succeeded=summary.succeeded,
            failed=summary.failed,
            errors=summary.errors,
        )
        return summary
