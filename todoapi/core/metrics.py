import threading
import time
from collections import Counter
from typing import Any, Dict


class Metrics:
    """Process-wide request counters, safe to update from concurrent requests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests_received = 0
        self._responses_sent = 0
        self._processing_time_us = 0
        self._responses_by_status: Counter = Counter()

    def request_received(self) -> None:
        with self._lock:
            self._requests_received += 1

    def response_sent(self, status_code: int, duration_us: int) -> None:
        with self._lock:
            self._responses_sent += 1
            self._processing_time_us += duration_us
            self._responses_by_status[str(status_code)] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "timestamp": int(time.time()),
                "total_requests_received": self._requests_received,
                "total_responses_sent": self._responses_sent,
                "total_processing_time_us": self._processing_time_us,
                "total_responses_sent_by_status": dict(self._responses_by_status),
            }
