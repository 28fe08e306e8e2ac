"""
Tests for devtools_mcp.utils.logger session-scoped file sinks.
"""

from devtools_mcp.utils.logger import (
    get_logger,
    save_logs_to_file,
    session_filter,
    session_scope,
    stop_saving_logs,
)

log = get_logger(__name__)


class TestSessionFilter:
    def test_accepts_own_and_unbound_records(self):
        accept = session_filter("a")

        assert accept({"extra": {"session": "a"}})
        assert accept({"extra": {}})
        assert not accept({"extra": {"session": "b"}})


class TestSessionFileSinks:
    def test_each_log_file_only_receives_its_session(self, tmp_path):
        first = tmp_path / "a.log"
        second = tmp_path / "b.log"
        first_sink = save_logs_to_file(first, session="a")
        second_sink = save_logs_to_file(second, session="b")

        try:
            with session_scope("a"):
                log.info("alpha line")
            with session_scope("b"):
                log.info("beta line")
            log.info("shared line")
        finally:
            # removing an enqueued sink flushes it
            stop_saving_logs(first_sink)
            stop_saving_logs(second_sink)

        first_text = first.read_text(encoding="utf-8")
        second_text = second.read_text(encoding="utf-8")
        assert "alpha line" in first_text
        assert "beta line" not in first_text
        assert "beta line" in second_text
        assert "alpha line" not in second_text
        assert "shared line" in first_text and "shared line" in second_text
