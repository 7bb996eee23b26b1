"""Loguru wiring for the out-of-band diagnostic trace channel."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import Settings

TRACE_CHANNEL = "trace"

trace_logger = logger.bind(channel=TRACE_CHANNEL)

_trace_sink_id: int | None = None


def _is_trace_record(record) -> bool:
    return record["extra"].get("channel") == TRACE_CHANNEL


def configure_logging(settings: Settings) -> int | None:
    """Route trace records to their own file sink; returns the sink id."""

    global _trace_sink_id

    if _trace_sink_id is not None:
        logger.remove(_trace_sink_id)
        _trace_sink_id = None

    if not settings.trace_log_path:
        return None

    path = Path(settings.trace_log_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.exception("Failed to create trace log directory {}", path.parent)
        return None

    _trace_sink_id = logger.add(
        path,
        filter=_is_trace_record,
        rotation="1 day",
        retention="30 days",
        enqueue=True,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {extra[origin]} | {message}",
    )
    return _trace_sink_id
