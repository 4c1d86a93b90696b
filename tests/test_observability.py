"""Tests for the observability module.

Tests for metrics collection, operation timing and logging configuration.
"""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from notegraph.observability import (
    ROOT_LOGGER_NAME,
    MetricsCollector,
    configure_logging,
    metrics,
    timed_operation,
    traced,
)


@pytest.fixture
def restore_root_logger():
    """Put the notegraph logger back the way the test found it."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_record_success_and_failure(self):
        collector = MetricsCollector()
        collector.record_operation("search", 10.0, True)
        collector.record_operation("search", 30.0, False, error="boom")

        m = collector.get_metrics()["search"]
        assert m["count"] == 2
        assert m["success_count"] == 1
        assert m["error_count"] == 1
        assert m["avg_duration_ms"] == 20.0
        assert m["min_duration_ms"] == 10.0
        assert m["max_duration_ms"] == 30.0
        assert m["last_error"] == "boom"
        assert m["last_error_time"] is not None

    def test_summary_and_reset(self):
        collector = MetricsCollector()
        assert collector.get_summary()["overall_success_rate"] == 1.0
        collector.record_operation("create_note", 1.0, True)
        summary = collector.get_summary()
        assert summary["total_operations"] == 1
        assert summary["operations_tracked"] == ["create_note"]

        collector.reset()
        assert collector.get_metrics() == {}


class TestTimedOperation:
    """Tests for timed_operation and traced."""

    def test_records_success(self):
        with timed_operation("unit_op", key="value") as op:
            op["result_count"] = 3
        assert metrics.get_metrics()["unit_op"]["success_count"] == 1
        assert len(op["correlation_id"]) == 8

    def test_records_failure_and_reraises(self):
        with pytest.raises(ValueError):
            with timed_operation("failing_op"):
                raise ValueError("nope")
        m = metrics.get_metrics()["failing_op"]
        assert m["error_count"] == 1
        assert m["last_error"] == "nope"

    def test_traced_decorator(self):
        @traced("decorated")
        def work(query):
            return [query, query]

        assert work(query="x") == ["x", "x"]
        assert metrics.get_metrics()["decorated"]["count"] == 1

    def test_service_operations_are_recorded(self, note_service, search_service):
        note_service.create_note("Tracked", "[[Nothing]]")
        search_service.search("tracked")
        recorded = metrics.get_metrics()
        assert recorded["create_note"]["success_count"] == 1
        assert recorded["sync_links"]["success_count"] == 1
        assert recorded["search"]["success_count"] == 1


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_only(self, restore_root_logger):
        assert configure_logging(level="DEBUG") is None
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1

    def test_rotating_file(self, restore_root_logger, tmp_path):
        log_file = configure_logging(level=logging.INFO, log_dir=tmp_path, console=False)
        assert log_file == tmp_path / "notegraph.log"
        handlers = restore_root_logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)

        logging.getLogger("notegraph.test").info("hello file")
        handlers[0].flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")

    def test_repeated_calls_do_not_duplicate(self, restore_root_logger, tmp_path):
        configure_logging(level="INFO", log_dir=tmp_path)
        configure_logging(level="INFO", log_dir=tmp_path)
        assert len(restore_root_logger.handlers) == 2
