"""
Tests for logging and metrics.
"""

import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from monitoring.logging import (
    JSONFormatter,
    LoggingContext,
    get_request_context,
    redact_sensitive_data,
    redact_string,
)
from monitoring.metrics import MetricsCollector


def make_record(msg, *args, **extra):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedaction:
    def test_fingerprint_shortened(self):
        text = redact_string("root=" + "ab" * 32)
        assert text == "root=ababab...ababab"

    def test_api_key_redacted(self):
        assert "secret123" not in redact_string("api_key=secret123")

    def test_sensitive_fields(self):
        data = redact_sensitive_data({"X-API-Key": "k", "owner": "alice"})
        assert data == {"X-API-Key": "[REDACTED]", "owner": "alice"}


class TestJSONFormatter:
    def test_includes_context_and_extras(self):
        with LoggingContext(operation="attest"):
            line = JSONFormatter().format(make_record("signed %s", "kyc", owner="alice"))

        entry = json.loads(line)
        assert entry["message"] == "signed kyc"
        assert entry["context"] == {"operation": "attest"}
        assert entry["owner"] == "alice"

    def test_context_restored(self):
        with LoggingContext(request_id="r1"):
            with LoggingContext(operation="attest"):
                assert get_request_context() == {"request_id": "r1", "operation": "attest"}
            assert get_request_context() == {"request_id": "r1"}
        assert get_request_context() == {}


class TestMetricsCollector:
    def test_labelled_counters(self):
        collector = MetricsCollector()
        collector.increment("ledger_operations_total", labels={"operation": "attest", "outcome": "ok"})
        collector.increment("ledger_operations_total", labels={"outcome": "ok", "operation": "attest"})

        labels = {"operation": "attest", "outcome": "ok"}
        assert collector.get_counter("ledger_operations_total", labels=labels) == 2

    def test_prometheus_export(self):
        collector = MetricsCollector()
        collector.increment("recoveries_executed_total")
        collector.timing("http_request_duration_ms", 3.0, labels={"method": "GET"})
        text = collector.to_prometheus()

        assert "quorumid_recoveries_executed_total 1" in text
        assert 'quorumid_http_request_duration_ms_bucket{method="GET",le="5"} 1' in text
        assert 'quorumid_http_request_duration_ms_count{method="GET"} 1' in text

    def test_reset(self):
        collector = MetricsCollector()
        collector.set_gauge("block_height", 7)
        collector.reset()
        assert collector.get_gauge("block_height") == 0.0
