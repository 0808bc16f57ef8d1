"""Per-call metrics for every external service the agent talks to.

Services: ``monde`` (back-office requests), ``monde-auth`` (token login),
``sales`` (ledger fetches and fallbacks) and ``anthropic`` (model rounds).

Data points are buffered in memory. When ``METRICS_ENABLED=true`` a daemon
thread pushes them to CloudWatch every ``FLUSH_INTERVAL_SECONDS``; otherwise
they are only logged at DEBUG. Running success/failure counters are kept
either way and exposed through ``snapshot()``.

>>> from travel_agent.services.metrics import metrics
>>> metrics.record_success("monde", "GET /people", latency_ms=87.0)
>>> metrics.record_failure("sales", "fetch", error_type="DegradedDataError")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections import Counter
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "TravelAgent"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # PutMetricData limit


class MetricsClient:
    """Buffers metric data points and optionally ships them to CloudWatch."""

    def __init__(self, *, enabled: bool | None = None) -> None:
        if enabled is None:
            enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._enabled = enabled
        self._buffer: list[dict[str, Any]] = []
        self._counts: Counter[tuple[str, str]] = Counter()
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        self._record(service, operation, "success", latency_ms=latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        self._record(service, operation, "failure", latency_ms=latency_ms, error_type=error_type)

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Return ``{service: {"success": n, "failure": m}}`` since start-up."""
        with self._lock:
            result: dict[str, dict[str, int]] = {}
            for (service, status), count in self._counts.items():
                result.setdefault(service, {"success": 0, "failure": 0})[status] = count
            return result

    def flush(self) -> int:
        """Send buffered data points to CloudWatch.  Returns the number sent."""
        with self._lock:
            batch, self._buffer = self._buffer, []
        if not batch:
            return 0
        if not self._enabled:
            logger.debug("Metrics disabled, dropping %d data points", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _record(
        self,
        service: str,
        operation: str,
        status: str,
        *,
        latency_ms: float = 0,
        error_type: str | None = None,
    ) -> None:
        now = datetime.now(UTC)
        service_dim = {"Name": "Service", "Value": service}
        points = [
            {
                "MetricName": "ExternalAPI/RequestCount",
                "Dimensions": [service_dim, {"Name": "Status", "Value": status}],
                "Timestamp": now,
                "Value": 1,
                "Unit": "Count",
            }
        ]
        if error_type:
            points.append(
                {
                    "MetricName": "ExternalAPI/ErrorCount",
                    "Dimensions": [service_dim, {"Name": "ErrorType", "Value": error_type}],
                    "Timestamp": now,
                    "Value": 1,
                    "Unit": "Count",
                }
            )
        if latency_ms > 0:
            points.append(
                {
                    "MetricName": "ExternalAPI/Latency",
                    "Dimensions": [service_dim, {"Name": "Operation", "Value": operation}],
                    "Timestamp": now,
                    "Value": latency_ms,
                    "Unit": "Milliseconds",
                }
            )

        with self._lock:
            self._buffer.extend(points)
            self._counts[(service, status)] += 1
        logger.debug(
            "Metric: %s %s %s error=%s latency=%.1fms",
            service, operation, status, error_type, latency_ms,
        )

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3  # noqa: PLC0415 — only needed when metrics are shipped

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        threading.Thread(target=_loop, daemon=True, name="metrics-flush").start()
        atexit.register(self.flush)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
