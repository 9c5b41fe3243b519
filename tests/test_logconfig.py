import io
import sys

import structlog

from s2tldr.logconfig import configure_logging


def test_logs_follow_the_current_stderr(monkeypatch) -> None:
    first = io.StringIO()
    monkeypatch.setattr(sys, "stderr", first)
    configure_logging("INFO")
    first.close()

    second = io.StringIO()
    monkeypatch.setattr(sys, "stderr", second)
    structlog.get_logger("s2tldr.test").info("library.work_added", key="ABCD2345")

    assert "library.work_added" in second.getvalue()


def test_level_filter_drops_debug(monkeypatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    configure_logging("warning")

    logger = structlog.get_logger("s2tldr.test")
    logger.debug("resolver.match", title="Deep Learning")
    logger.warning("resolver.transport_error", work="ABCD2345")

    output = stream.getvalue()
    assert "resolver.match" not in output
    assert "resolver.transport_error" in output
