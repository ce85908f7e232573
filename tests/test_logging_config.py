"""Structured logging formatter tests."""

import json
import logging

from grc_portal.middleware.logging_config import JSONFormatter, ReadableFormatter


def _record(msg="Consultant reviewed", **extra):
    record = logging.LogRecord("grc_portal.test", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_carries_domain_extras():
    entry = json.loads(JSONFormatter().format(
        _record(consultant_id=7, event_type="consultant.approved", service="AUDIT")
    ))
    assert entry["message"] == "Consultant reviewed"
    assert entry["level"] == "INFO"
    assert entry["consultant_id"] == 7
    assert entry["event_type"] == "consultant.approved"
    assert entry["service"] == "AUDIT"
    assert "client_id" not in entry


def test_json_formatter_ignores_unlisted_attributes():
    entry = json.loads(JSONFormatter().format(_record(password="hunter2")))
    assert "password" not in entry


def test_readable_formatter_shows_event_type():
    line = ReadableFormatter().format(_record(event_type="scoping.submitted"))
    assert "<scoping.submitted>" in line
    assert "Consultant reviewed" in line


def test_readable_formatter_shows_request_and_entity_context():
    line = ReadableFormatter().format(
        _record(request_id="ab12", client_id=3, service="AUDIT", duration_ms=14.2)
    )
    assert "[req=ab12]" in line
    assert "client=3" in line
    assert "service=AUDIT" in line
    assert line.endswith("(14ms)")
    assert "consultant=" not in line
