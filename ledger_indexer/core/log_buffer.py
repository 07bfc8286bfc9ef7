"""
In-memory ring buffer of recent log entries.

Backs the /logs endpoint so operators can inspect recent indexer activity
without shell access to the host.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional


class LogBuffer:
    """Thread-safe bounded buffer keeping the newest ``max_size`` entries."""

    def __init__(self, max_size: int = 500):
        self.max_size = max_size
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def add(self, level: str, message: str, context: Optional[Dict[str, Any]] = None):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "context": context or {},
        }
        with self._lock:
            self._entries.append(entry)

    def get_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Return up to ``limit`` most recent entries, oldest first."""
        with self._lock:
            entries = list(self._entries)
        if limit <= 0 or limit > len(entries):
            limit = len(entries)
        return entries[len(entries) - limit :]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_buffer: Optional[LogBuffer] = None


def init_log_buffer(max_size: int = 500) -> LogBuffer:
    """Create (or replace) the process-wide log buffer."""
    global _buffer
    _buffer = LogBuffer(max_size)
    return _buffer


def get_log_buffer() -> Optional[LogBuffer]:
    return _buffer


def buffer_processor(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that mirrors each entry into the log buffer."""
    if _buffer is not None:
        context = {
            k: v
            for k, v in event_dict.items()
            if k not in ("event", "level", "timestamp")
        }
        _buffer.add(
            level=method_name,
            message=str(event_dict.get("event", "")),
            context={k: str(v) for k, v in context.items()},
        )
    return event_dict
