"""Tests for the metrics collector and log formatting."""

import json
import logging

from shipbot.core.logging import ColorFormatter, CycleTimer, StructuredFormatter, setup_logging
from shipbot.core.metrics import MetricsCollector


def _record(msg="hello", **extra):
    record = logging.LogRecord("shipbot.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ── Metrics ─────────────────────────────────────────────────


class TestMetrics:
    def test_counters_with_labels(self):
        m = MetricsCollector()
        m.inc("bridge.joins", labels={"status": "ok"})
        m.inc("bridge.joins", labels={"status": "ok"})
        m.inc("bridge.joins", labels={"status": "error"})

        assert m.counter("bridge.joins", {"status": "ok"}) == 2
        assert m.counter("bridge.joins", {"status": "error"}) == 1
        assert m.counter("bridge.joins") == 0

    def test_histogram_percentiles(self):
        m = MetricsCollector()
        for value in range(1, 101):
            m.observe("bridge.cycle_ms", value)

        assert m.percentile("bridge.cycle_ms", 50) == 51
        assert m.percentile("missing", 50) is None
        summary = m.snapshot()["histograms"]["bridge.cycle_ms"]
        assert summary["count"] == 100
        assert summary["min"] == 1
        assert summary["max"] == 100

    def test_histogram_window_is_bounded(self):
        m = MetricsCollector()
        for value in range(MetricsCollector.HISTOGRAM_MAX_SAMPLES + 10):
            m.observe("x", value)
        assert m.snapshot()["histograms"]["x"]["min"] == 10

    def test_gauges_and_reset(self):
        m = MetricsCollector()
        m.gauge_set("bridge.subscriptions", 3)
        assert m.snapshot()["gauges"] == {"bridge.subscriptions": 3}

        m.reset()

        assert m.snapshot()["gauges"] == {}
        assert m.snapshot()["counters"] == {}


# ── Logging ─────────────────────────────────────────────────


class TestLogging:
    def test_structured_formatter_includes_extras(self):
        line = StructuredFormatter().format(_record(frame_id=12, resource="~zod/chat"))

        entry = json.loads(line)
        assert entry["msg"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["frame_id"] == 12
        assert entry["resource"] == "~zod/chat"
        assert "cycle" not in entry

    def test_color_formatter_restores_record(self):
        record = _record()
        output = ColorFormatter(use_color=True).format(record)

        assert "\033[" in output
        assert record.levelname == "INFO"
        assert record.name == "shipbot.test"

    def test_plain_formatter(self):
        output = ColorFormatter(use_color=False).format(_record())
        assert "\033[" not in output
        assert "[shipbot.test] INFO: hello" in output

    def test_setup_logging_json(self, monkeypatch):
        monkeypatch.setenv("SHIPBOT_LOG_FORMAT", "json")
        monkeypatch.setenv("SHIPBOT_LOG_LEVEL", "debug")
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))
        try:
            setup_logging()

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.setLevel(saved[0])
            root.handlers[:] = saved[1]

    def test_cycle_timer(self):
        timer = CycleTimer()
        timer.mark("drain")
        timer.mark("act")

        assert timer.elapsed("drain") >= 0
        assert timer.elapsed("missing") is None
        assert timer.total_ms() >= 0
        assert timer.summary().startswith("drain: ")
        assert "Total: " in timer.summary()
