"""Tests for log processors and request log context."""

import structlog

from animagenius.logging import (
    MAX_LOGGED_VALUE_CHARS,
    bind_request_context,
    clear_request_context,
    truncate_long_values,
)


def test_long_values_are_truncated() -> None:
    event = {"event": "upload_received", "content": "x" * 2000, "size": 2000}

    result = truncate_long_values(None, "info", event)

    assert result["content"].startswith("x" * MAX_LOGGED_VALUE_CHARS)
    assert result["content"].endswith("(2000 chars)")
    assert result["size"] == 2000


def test_event_name_is_never_truncated() -> None:
    name = "e" * (MAX_LOGGED_VALUE_CHARS + 1)
    assert truncate_long_values(None, "info", {"event": name})["event"] == name


def test_bind_request_context_replaces_previous_request() -> None:
    bind_request_context("first", user_id="u-1", path="/api/v1/projects")
    request_id = bind_request_context(path="/health")

    context = structlog.contextvars.get_contextvars()
    assert context == {"request_id": request_id, "path": "/health"}

    clear_request_context()
    assert structlog.contextvars.get_contextvars() == {}
