"""Unit tests for the log formatters and the request-context filter."""

import json
import logging
import sys

from aquafin.core.logging import (
    ConsoleFormatter,
    JSONFormatter,
    RequestContextFilter,
    request_id_var,
)


def _record(msg: str = "Approved payout %s", *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="aquafin.services.payout_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=42,
        msg=msg,
        args=args or ("p-1",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestContextFilter:
    def test_stamps_current_request_id(self):
        token = request_id_var.set("req-abc")
        try:
            record = _record()
            assert RequestContextFilter().filter(record) is True
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-abc"

    def test_keeps_explicit_request_id(self):
        token = request_id_var.set("req-abc")
        try:
            record = _record(request_id="explicit")
            RequestContextFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "explicit"

    def test_outside_a_request_is_none(self):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_id is None


class TestJSONFormatter:
    def test_domain_fields_are_copied(self):
        record = _record(payout_id="p-1", cycle_id="c-1")

        line = json.loads(JSONFormatter().format(record))

        assert line["message"] == "Approved payout p-1"
        assert line["level"] == "INFO"
        assert line["payout_id"] == "p-1"
        assert line["cycle_id"] == "c-1"
        assert "investor_id" not in line

    def test_exception_is_included(self):
        try:
            raise RuntimeError("ledger write failed")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        line = json.loads(JSONFormatter().format(record))

        assert "ledger write failed" in line["exception"]


class TestConsoleFormatter:
    def test_short_request_and_cycle_ids(self):
        record = _record(request_id="0123456789abcdef", cycle_id="fedcba9876543210")

        text = ConsoleFormatter().format(record)

        assert "[01234567]" in text
        assert "cycle=fedcba98" in text
        assert text.endswith("Approved payout p-1")
