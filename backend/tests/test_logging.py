from __future__ import annotations

from loguru import logger

from app.core.config import Settings
from app.core.logging import configure_logging, trace_logger


def test_trace_records_go_to_their_own_file(tmp_path):
    path = tmp_path / "logs" / "trace.log"
    sink_id = configure_logging(Settings(trace_log_path=str(path)))
    assert sink_id is not None
    try:
        trace_logger.bind(origin="ev.recharge").info("run=abc diagnostics=transaction log: not saved")
        logger.info("regular application log line")
        logger.complete()
    finally:
        configure_logging(Settings(trace_log_path=""))

    content = path.read_text(encoding="utf-8")
    assert "ev.recharge | run=abc diagnostics=transaction log: not saved" in content
    assert "regular application log line" not in content


def test_blank_path_disables_trace_sink():
    assert configure_logging(Settings(trace_log_path="")) is None
