"""In-process request and resource-read metrics.

Transports (REST middleware, MCP dispatch) record lightweight events here so
that ``/metrics/performance`` can report them without an external backend.

Collected domains:
        * Resource reads (successes, URI failures, resolution errors, latency)
        * Tool calls (per tool success/failure counts)
        * Per-route request counts, errors and latency
        * System snapshot (uptime, memory, CPU) sampled with psutil on demand

Example::

        from resource_graph_api.monitoring import get_monitor
        monitor = get_monitor()
        monitor.record_read("notes://folders", ok=True, response_time=0.002)
        print(monitor.get_performance_summary()["reads"]["total"])  # -> 1
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import psutil


@dataclass
class ReadMetrics:
    """Aggregate resource-read counters.

    Attributes:
        total: Reads attempted.
        succeeded: Reads returning a payload.
        uri_failures: Reads rejected while resolving the URI.
        resolution_errors: Reads whose resolution raised.
        paginated: Successful reads wrapped in a pagination envelope.
        average_response_time: Mean read latency (seconds).
    """

    total: int = 0
    succeeded: int = 0
    uri_failures: int = 0
    resolution_errors: int = 0
    paginated: int = 0
    average_response_time: float = 0.0


@dataclass
class EndpointMetrics:
    """Request counters for one route."""

    requests: int = 0
    errors: int = 0
    elapsed: float = 0.0
    slowest: float = 0.0

    @property
    def mean_ms(self) -> float:
        return round(self.elapsed / self.requests * 1000, 2) if self.requests else 0.0


@dataclass
class ToolMetrics:
    succeeded: int = 0
    failed: int = 0


class PerformanceMonitor:
    """Central coordinator for recording and querying metrics.

    Thread-safe; intended to be shared as a process-wide singleton via
    :func:`get_monitor`.
    """

    def __init__(self, failure_history: int = 100):
        self.start_time = datetime.now()
        self._lock = threading.RLock()

        self.read_metrics = ReadMetrics()
        self.routes: Dict[str, EndpointMetrics] = defaultdict(EndpointMetrics)
        self.tool_metrics: Dict[str, ToolMetrics] = defaultdict(ToolMetrics)
        self.recent_failures: deque = deque(maxlen=failure_history)

    def record_read(
        self,
        uri: str,
        ok: bool,
        response_time: float = 0.0,
        error: Optional[str] = None,
        paginated: bool = False,
    ) -> None:
        """Record one :func:`~resource_graph_api.resources.read_resource` call."""
        with self._lock:
            metrics = self.read_metrics
            metrics.total += 1
            if ok:
                metrics.succeeded += 1
                if paginated:
                    metrics.paginated += 1
            else:
                if error and error.startswith("Resolution error"):
                    metrics.resolution_errors += 1
                else:
                    metrics.uri_failures += 1
                self.recent_failures.append(
                    {"uri": uri, "error": error, "timestamp": datetime.now().isoformat()}
                )
            metrics.average_response_time = (
                metrics.average_response_time * (metrics.total - 1) + response_time
            ) / metrics.total

    def record_tool_call(self, name: str, ok: bool) -> None:
        with self._lock:
            if ok:
                self.tool_metrics[name].succeeded += 1
            else:
                self.tool_metrics[name].failed += 1

    def record_endpoint_request(
        self, endpoint: str, response_time: float, status_code: int = 200
    ) -> None:
        """Count one HTTP request against its route; 4xx and 5xx count as errors."""
        with self._lock:
            route = self.routes[endpoint]
            route.requests += 1
            route.elapsed += response_time
            route.slowest = max(route.slowest, response_time)
            if status_code >= 400:
                route.errors += 1

    def get_performance_summary(self) -> Dict[str, Any]:
        """Return a JSON-ready snapshot of every metric domain."""
        with self._lock:
            reads = self.read_metrics
            busiest = sorted(self.routes.items(), key=lambda kv: -kv[1].requests)[:10]
            return {
                "timestamp": datetime.now().isoformat(),
                "uptime_seconds": round((datetime.now() - self.start_time).total_seconds(), 2),
                "reads": {
                    "total": reads.total,
                    "succeeded": reads.succeeded,
                    "uri_failures": reads.uri_failures,
                    "resolution_errors": reads.resolution_errors,
                    "paginated": reads.paginated,
                    "average_response_time_ms": round(reads.average_response_time * 1000, 2),
                    "recent_failures": list(self.recent_failures)[-20:],
                },
                "tools": {
                    name: {"succeeded": m.succeeded, "failed": m.failed}
                    for name, m in self.tool_metrics.items()
                },
                "api": {
                    "total_requests": sum(r.requests for r in self.routes.values()),
                    "routes": {
                        path: {
                            "requests": r.requests,
                            "errors": r.errors,
                            "mean_ms": r.mean_ms,
                            "slowest_ms": round(r.slowest * 1000, 2),
                        }
                        for path, r in busiest
                    },
                },
            }

    def get_system_snapshot(self) -> Dict[str, Any]:
        """Process memory/CPU sample taken with psutil."""
        process = psutil.Process()
        return {
            "uptime_seconds": round((datetime.now() - self.start_time).total_seconds(), 2),
            "memory_usage_mb": round(process.memory_info().rss / (1024 * 1024), 2),
            "cpu_usage_percent": process.cpu_percent(interval=None),
            "threads": process.num_threads(),
        }

    def reset_metrics(self) -> None:
        """Reset all counters (primarily for tests)."""
        with self._lock:
            self.read_metrics = ReadMetrics()
            self.routes.clear()
            self.tool_metrics.clear()
            self.recent_failures.clear()
            self.start_time = datetime.now()


_monitor: Optional[PerformanceMonitor] = None


def get_monitor() -> PerformanceMonitor:
    """Return (and lazily initialize) the process-wide monitor."""
    global _monitor
    if _monitor is None:
        _monitor = PerformanceMonitor()
    return _monitor
