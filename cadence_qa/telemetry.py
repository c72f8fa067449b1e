"""
Pipeline Telemetry
==================

Logging and metrics context passed explicitly to every pipeline component.

Lifecycle: create one `PipelineTelemetry` at process start, hand it to the
components, and `close()` it at shutdown (or use it as a context manager).
Log entries and metric samples live in bounded buffers; once full, the
oldest entries are dropped. Concurrent requests may share one instance.
"""

import json
import threading
import time
from collections import Counter, deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .config import TelemetryConfig


_LEVEL_MARKERS = {
    "debug": "  ·",
    "info": "  ✓",
    "warning": "  ⚠️ ",
    "error": "  ✗",
}


class PipelineTelemetry:
    """Bounded in-memory log and metrics buffers with console echo"""

    def __init__(self, config: Optional[TelemetryConfig] = None):
        self.config = config or TelemetryConfig()
        self._logs = deque(maxlen=self.config.max_log_entries)
        self._metrics = deque(maxlen=self.config.max_metric_samples)
        self._counters = Counter()
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._closed = False

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log(self, level: str, message: str, **fields) -> None:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "message": message,
        }
        if fields:
            entry["fields"] = fields

        with self._lock:
            self._logs.append(entry)
            self._counters[f"log.{level}"] += 1

        # Warnings and errors always reach the console
        if self.config.verbose or level in ("warning", "error"):
            print(f"{_LEVEL_MARKERS.get(level, '  ')} {message}")

    def debug(self, message: str, **fields) -> None:
        self.log("debug", message, **fields)

    def info(self, message: str, **fields) -> None:
        self.log("info", message, **fields)

    def warning(self, message: str, **fields) -> None:
        self.log("warning", message, **fields)

    def error(self, message: str, **fields) -> None:
        self.log("error", message, **fields)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def record_metric(self, name: str, value: float, **tags) -> None:
        sample = {"name": name, "value": value, "timestamp": time.time()}
        if tags:
            sample["tags"] = tags
        with self._lock:
            self._metrics.append(sample)

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    @contextmanager
    def step(self, name: str, **tags) -> Iterator[Dict]:
        """
        Time a pipeline step.

        Yields a dict the caller may annotate; `success` defaults to True and
        is set to False if the block raises.
        """
        details = {"success": True}
        start = time.time()
        try:
            yield details
        except Exception:
            details["success"] = False
            raise
        finally:
            duration = time.time() - start
            self.record_metric(f"step.{name}.seconds", duration, success=details["success"], **tags)
            self.increment(f"step.{name}.{'ok' if details['success'] else 'failed'}")
            self.debug(f"{name} finished in {duration:.3f}s")

    # ------------------------------------------------------------------
    # Inspection and teardown
    # ------------------------------------------------------------------

    @property
    def logs(self) -> List[Dict]:
        with self._lock:
            return list(self._logs)

    @property
    def metrics(self) -> List[Dict]:
        with self._lock:
            return list(self._metrics)

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def snapshot(self) -> Dict:
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self._started_at, 3),
                "counters": dict(self._counters),
                "log_entries": len(self._logs),
                "metric_samples": len(self._metrics),
                "recent_logs": list(self._logs)[-20:],
            }

    def close(self) -> None:
        """Flush a summary to `flush_path` (if configured) and clear buffers"""
        if self._closed:
            return
        summary = self.snapshot()
        if self.config.flush_path:
            path = Path(self.config.flush_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf8") as f:
                json.dump(summary, f, indent=2, default=str)
        with self._lock:
            self._logs.clear()
            self._metrics.clear()
            self._counters.clear()
        self._closed = True

    def __enter__(self) -> "PipelineTelemetry":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
