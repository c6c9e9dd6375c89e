"""
Structured JSON logger: append-only, one object per line (.jsonl).

Usage:
    from modules.observability.logger import StructuredLogger

    slog = StructuredLogger()
    slog.log("trip_ab12", "AUDIT", {"code": "NO_HOTEL", "message": "..."})

    with slog.timed("trip_ab12", "rebalance") as perf:
        perf["moves"] = 3

Each pipeline run writes  <LOGS_DIR>/<session_id>.jsonl  (config.LOGS_DIR).
Event types in use: PERFORMANCE (stage timings) and AUDIT (plan warnings).
Set STRUCTURED_LOG_ENABLED=false to turn every call into a no-op.
"""

from __future__ import annotations

import json
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, TextIO

import config


def _envelope(session_id: str, event_type: str, payload: dict) -> str:
    return json.dumps(
        {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "event_type": event_type,
            "payload": payload,
        },
        default=str,
        ensure_ascii=False,
    )


class StructuredLogger:
    """Per-session JSONL sink shared by the pipeline stages of one process."""

    def __init__(self, logs_dir: Path | str | None = None, enabled: bool | None = None) -> None:
        self._logs_dir = Path(logs_dir or config.LOGS_DIR)
        self._enabled = config.STRUCTURED_LOG_ENABLED if enabled is None else enabled
        self._lock = threading.Lock()
        self._sinks: dict[str, TextIO] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    def log(self, session_id: str, event_type: str, payload: dict) -> None:
        if not self._enabled:
            return
        line = _envelope(session_id, event_type, payload)
        with self._lock:
            sink = self._sinks.get(session_id) or self._open_sink(session_id)
            print(line, file=sink, flush=True)

    @contextmanager
    def timed(self, session_id: str, stage: str, **extra) -> Iterator[dict]:
        """Log a PERFORMANCE event for the enclosed block.

        Keys the caller sets on the yielded dict end up in the payload next to
        ``stage`` and ``duration_ms``.
        """
        payload: dict = dict(extra)
        started = time.perf_counter()
        try:
            yield payload
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            payload.update(stage=stage, duration_ms=round(elapsed_ms, 2))
            self.log(session_id, "PERFORMANCE", payload)

    def close(self, session_id: str | None = None) -> None:
        """Close the sink of one session, or every sink when no id is given."""
        with self._lock:
            ids = [session_id] if session_id else list(self._sinks)
            for sid in ids:
                sink = self._sinks.pop(sid, None)
                if sink is not None:
                    sink.close()

    def _open_sink(self, session_id: str) -> TextIO:
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        sink = (self._logs_dir / f"{session_id}.jsonl").open("a", encoding="utf-8")
        self._sinks[session_id] = sink
        return sink
