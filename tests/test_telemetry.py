"""Telemetry 测试"""

import io
import logging
import sys

from devshell.telemetry import FALLBACK_MARKER, Metrics, is_fallback_handler


class TestMetrics:
    """计数器测试"""

    def test_labels_are_order_independent(self):
        m = Metrics()
        m.inc("config.resolved", {"key": "apps", "source": "command_line"})
        m.inc("config.resolved", {"source": "command_line", "key": "apps"})

        assert m.get_counter("config.resolved", {"key": "apps", "source": "command_line"}) == 2
        assert m.get_counter("config.resolved") == 0

    def test_snapshot_filters_by_prefix(self):
        m = Metrics()
        m.inc("boot.started", value=2)
        m.inc("boot.failed", {"kind": "load_failed"})
        m.inc("migration.raced")

        assert m.snapshot("boot.") == {"boot.failed{kind=load_failed}": 1, "boot.started": 2}
        assert set(m.snapshot()) == {"boot.failed{kind=load_failed}", "boot.started", "migration.raced"}

    def test_reading_does_not_create_counters(self):
        m = Metrics()
        m.get_counter("missing")
        assert m.snapshot() == {}


class TestFallbackHandler:
    """fallback handler 识别"""

    def test_marked_handler(self):
        handler = logging.StreamHandler(io.StringIO())
        setattr(handler, FALLBACK_MARKER, True)
        assert is_fallback_handler(handler)

    def test_plain_stderr_handler(self):
        assert is_fallback_handler(logging.StreamHandler(sys.stderr))

    def test_other_handlers(self):
        assert not is_fallback_handler(logging.StreamHandler(io.StringIO()))
        assert not is_fallback_handler(logging.NullHandler())
