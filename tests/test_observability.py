"""
Observability Tests

INVARIANTS TESTED:
==================
1. Error history is bounded and per session
2. Debug output stops once a session is closed
3. Metrics are append-only and aggregate by label
4. Audit entries are immutable and filterable
5. Collectors are bounded and safe to share between sessions
"""

import logging
import threading

from fortress.contracts.base import ErrorCode, ValidationError
from fortress.observability import (
    AuditCollector, AuditOutcome, DEFAULT_METRICS, DiagnosticsContext, MetricDefinition, MetricType,
    MetricsCollector,
)

from .fixtures import salvage_events


class TestDiagnosticsContext:

    def test_history_is_bounded(self):
        diagnostics = DiagnosticsContext("session_a", max_error_history=3)
        for i in range(5):
            diagnostics.record_error(f"failure {i}")
        assert [e.message for e in diagnostics.error_history()] == ["failure 2", "failure 3", "failure 4"]
        assert diagnostics.last_error().message == "failure 4"

    def test_records_error_code(self):
        diagnostics = DiagnosticsContext("session_a")
        error = ValidationError("Card not owned: x", card_id="x")
        entry = diagnostics.record_error(error.message, context="SELECT_CARD", error=error.error)
        assert entry.to_dict()["code"] == "PRECONDITION_FAILED"
        assert entry.to_dict()["context"] == "SELECT_CARD"

    def test_clear(self):
        diagnostics = DiagnosticsContext("session_a")
        diagnostics.record_error("boom")
        diagnostics.clear()
        assert diagnostics.last_error() is None

    def test_debug_output_only_when_enabled(self, caplog):
        quiet = DiagnosticsContext("session_quiet")
        loud = DiagnosticsContext("session_loud", debug=True)
        event = salvage_events()[0]
        with caplog.at_level(logging.DEBUG, logger="fortress.observability"):
            quiet.debug_event(event)
            loud.debug_event(event)
        assert len(caplog.records) == 1
        assert "GAME_STARTED" in caplog.records[0].getMessage()

    def test_closed_context_is_silent(self, caplog):
        diagnostics = DiagnosticsContext("session_a", debug=True)
        diagnostics.close()
        with caplog.at_level(logging.DEBUG, logger="fortress.observability"):
            diagnostics.debug_log("after close %s", 1)
            diagnostics.record_error("still recorded")
        assert diagnostics.closed
        assert caplog.records == []
        assert diagnostics.last_error().message == "still recorded"


class TestMetricsCollector:

    def test_default_definitions(self):
        metrics = MetricsCollector()
        for definition in DEFAULT_METRICS:
            assert metrics.definition(definition.name) == definition
            assert metrics.get_metric(definition.name) == []

    def test_label_filter_and_aggregates(self):
        metrics = MetricsCollector()
        metrics.record("command_duration_ms", 2.0, {"command_type": "START_GAME"})
        metrics.record("command_duration_ms", 4.0, {"command_type": "START_GAME"})
        metrics.record("command_duration_ms", 10.0, {"command_type": "ACCEPT_QUEST"})

        aggregates = metrics.compute_aggregates("command_duration_ms", {"command_type": "START_GAME"})
        assert aggregates == {"count": 2, "sum": 6.0, "min": 2.0, "max": 4.0, "avg": 3.0}
        assert metrics.get_latest("command_duration_ms").labels == (("command_type", "ACCEPT_QUEST"),)

    def test_unregistered_metric(self):
        metrics = MetricsCollector()
        metrics.register_metric(MetricDefinition("saves_total", MetricType.COUNTER, "Saves written"))
        metrics.record("saves_total", 1)
        metrics.record("ad_hoc", 1)
        assert len(metrics.get_all_metrics()["saves_total"]) == 1
        assert metrics.compute_aggregates("missing") == {}

    def test_series_are_bounded(self):
        metrics = MetricsCollector(max_points_per_metric=3)
        for value in range(5):
            metrics.record("command_duration_ms", float(value))
        assert [p.value for p in metrics.get_metric("command_duration_ms")] == [2.0, 3.0, 4.0]
        assert metrics.get_latest("command_duration_ms").value == 4.0


class TestAuditCollector:

    def test_filters(self):
        audit = AuditCollector()
        audit.log("session_a", "START_GAME", AuditOutcome.ACCEPTED, "t1", {"events": 6})
        audit.log("session_a", "ACCEPT_QUEST", AuditOutcome.REJECTED, "t2", {"code": "QUEST_NOT_FOUND"})
        audit.log("session_b", "START_GAME", AuditOutcome.ACCEPTED, "t3")

        assert audit.entry_count == 3
        assert len(audit.get_entries(session_id="session_a")) == 2
        rejected = audit.get_entries(outcome=AuditOutcome.REJECTED)
        assert [e.action for e in rejected] == ["ACCEPT_QUEST"]
        assert rejected[0].detail("code") == "QUEST_NOT_FOUND"

    def test_entry_ids_are_unique(self):
        audit = AuditCollector()
        first = audit.log("session_a", "START_GAME", AuditOutcome.ACCEPTED, "t1")
        second = audit.log("session_a", "START_GAME", AuditOutcome.ACCEPTED, "t1")
        assert first.entry_id != second.entry_id

    def test_none_details_are_dropped(self):
        entry = AuditCollector().log("s", "X", AuditOutcome.SYSTEM, "t", {"a": None, "b": 2})
        assert entry.details == (("b", "2"),)

    def test_oldest_entries_dropped(self):
        audit = AuditCollector(max_entries=2)
        for action in ("START_GAME", "ACCEPT_QUEST", "MAKE_CHOICE"):
            audit.log("session_a", action, AuditOutcome.ACCEPTED, "t")
        assert audit.entry_count == 2
        assert [e.action for e in audit.get_entries()] == ["ACCEPT_QUEST", "MAKE_CHOICE"]

    def test_concurrent_logging_keeps_ids_unique(self):
        audit = AuditCollector()

        def log_many(session_id):
            for _ in range(200):
                audit.log(session_id, "START_GAME", AuditOutcome.ACCEPTED, "t")

        threads = [threading.Thread(target=log_many, args=(f"session_{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = audit.get_entries()
        assert len(entries) == 800
        assert len({e.entry_id for e in entries}) == 800
