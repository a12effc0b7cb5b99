import json
import logging
import os
import threading
from typing import List

from docchat.config import METRICS_PATH


logger = logging.getLogger(__name__)

_lock = threading.Lock()

# Latency history kept for percentile calculation
_MAX_LATENCIES = 5000


class MetricsTracker:

    def __init__(self, path: str = METRICS_PATH):

        self._path = path

        self._metrics = self._empty()

        self._load()

    @staticmethod
    def _empty() -> dict:

        return {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_latency": 0.0,
            "avg_latency": 0.0,
            "latencies": [],
        }

    def _load(self):

        if not os.path.exists(self._path):
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

        except (OSError, ValueError) as e:

            logger.warning(
                "Metrics file unreadable, starting fresh",
                extra={"error": str(e)},
            )

            return

        metrics = self._empty()
        metrics.update(data)

        self._metrics = metrics

    def _save(self):

        try:

            directory = os.path.dirname(self._path)

            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(self._path, "w") as f:
                json.dump(self._metrics, f, indent=2)

        except OSError as e:

            logger.warning(
                "Metrics save failed",
                extra={"error": str(e)},
            )

    def record_success(self, latency: float):

        with _lock:

            self._metrics["total_requests"] += 1

            self._metrics["successful_requests"] += 1

            self._metrics["total_latency"] += latency

            self._metrics["avg_latency"] = (
                self._metrics["total_latency"]
                / self._metrics["total_requests"]
            )

            latencies = self._metrics["latencies"]
            latencies.append(latency)
            del latencies[:-_MAX_LATENCIES]

            self._save()

    def record_failure(self):

        with _lock:

            self._metrics["total_requests"] += 1

            self._metrics["failed_requests"] += 1

            self._save()

    def get_metrics(self) -> dict:

        return {
            "total_requests": self._metrics["total_requests"],
            "successful_requests": self._metrics["successful_requests"],
            "failed_requests": self._metrics["failed_requests"],
            "avg_latency": self._metrics["avg_latency"],
            "p50_latency": self.get_latency_percentile(50),
            "p95_latency": self.get_latency_percentile(95),
        }

    def get_latency_percentile(self, percentile: float) -> float:

        latencies: List[float] = self._metrics.get("latencies", [])

        if not latencies:
            return 0.0

        sorted_latencies = sorted(latencies)

        index = int(len(sorted_latencies) * percentile / 100)

        index = min(index, len(sorted_latencies) - 1)

        return sorted_latencies[index]

    def reset(self):

        with _lock:
            self._metrics = self._empty()


metrics_tracker = MetricsTracker()
