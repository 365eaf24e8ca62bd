"""Tests for structured logging helpers."""

import logging

from app.core.structured_logging import build_log_context


def test_build_log_context_includes_only_provided_fields():
    context = build_log_context(
        user_id="user-1",
        org_id="org-1",
        request_id="req-1",
        route="/issues",
        method="POST",
    )

    assert context == {
        "user_id": "user-1",
        "org_id": "org-1",
        "request_id": "req-1",
        "route": "/issues",
        "method": "POST",
    }


def test_build_log_context_ignores_empty_fields():
    context = build_log_context(user_id="", org_id=None, request_id="req-1")

    assert context == {"request_id": "req-1"}


def test_context_lands_on_log_record(caplog):
    logger = logging.getLogger("app.test")
    with caplog.at_level(logging.INFO, logger="app.test"):
        logger.info("Authorization denied", extra=build_log_context(route="/users", method="GET"))

    [record] = caplog.records
    assert record.route == "/users"
    assert record.method == "GET"
