"""Tests for JSON log rendering and bound context."""

from __future__ import annotations

import json
import logging

from lumina_observability import log_context
from lumina_observability.logging import ContextFilter, JsonFormatter


def _render(message: str, **extra) -> dict:
    logger = logging.getLogger("tests.logging")
    record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, message, (), None, extra=extra)
    ContextFilter("orchestrator").filter(record)
    return json.loads(JsonFormatter().format(record))


def test_bound_context_and_extras_are_rendered() -> None:
    with log_context(run_id="run-1", project_id="p-1"):
        payload = _render("Enrichment applied", fields=["video_url"], upload_name="a.txt")

    assert payload["message"] == "Enrichment applied"
    assert payload["service"] == "orchestrator"
    assert payload["run_id"] == "run-1"
    assert payload["project_id"] == "p-1"
    assert payload["fields"] == ["video_url"]
    assert payload["upload_name"] == "a.txt"
    assert "lineno" not in payload


def test_explicit_extra_wins_and_none_unbinds() -> None:
    with log_context(project_id="outer", stage="OUTLINE_GENERATION"):
        with log_context(stage=None):
            payload = _render("Saved", project_id="inner")

    assert payload["project_id"] == "inner"
    assert "stage" not in payload


def test_context_cannot_overwrite_record_attributes() -> None:
    with log_context(filename="bogus.txt"):
        payload = _render("Upload rejected")

    assert "filename" not in payload
