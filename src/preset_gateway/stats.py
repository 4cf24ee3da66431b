"""
Stats tracker for Preset Gateway.

Tracks request counts per outcome, hour of day, endpoint and client key.
The counters are persisted through a debounced writer; day rollover of the
``today*`` counters happens when the snapshot is loaded.
"""

import copy
import logging
from datetime import datetime
from typing import Dict, Optional

from .persistence import DebouncedWriter, Store

logger = logging.getLogger(__name__)


def today_string(now: Optional[datetime] = None) -> str:
    """Local calendar day, e.g. ``Sat Oct 17 2026``."""
    return (now or datetime.now()).strftime("%a %b %d %Y")


def empty_snapshot() -> Dict:
    return {
        "totalRequests": 0,
        "totalTokens": 0,
        "successfulRequests": 0,
        "failedRequests": 0,
        "todayRequests": 0,
        "todayTokens": 0,
        "lastReset": today_string(),
        "hourlyStats": {},
        "endpoints": {},
        "keyStats": {},
        "lastUpdated": datetime.now().astimezone().isoformat(),
    }


class StatsAggregator:
    """Aggregate traffic counters with debounced persistence."""

    def __init__(self, store: Store, save_delay: float = 5.0):
        self.store = store
        self._data = empty_snapshot()
        self.writer = DebouncedWriter(store, self._snapshot_for_save, delay=save_delay)

    def load(self, now: Optional[datetime] = None) -> None:
        """Load persisted counters, resetting today's counters on a new day."""
        try:
            data = self.store.load()
        except (OSError, ValueError):
            logger.exception("Failed to load stats, starting from zero")
            data = None

        snapshot = empty_snapshot()
        if isinstance(data, dict):
            snapshot.update(data)

        today = today_string(now)
        if snapshot["lastReset"] != today:
            snapshot["todayRequests"] = 0
            snapshot["todayTokens"] = 0
            snapshot["lastReset"] = today
        self._data = snapshot

    def record(
        self,
        endpoint: str,
        success: bool,
        key_id: Optional[str] = None,
        tokens: int = 0,
        now: Optional[datetime] = None,
    ) -> None:
        """Count one request outcome and schedule a save."""
        data = self._data
        data["totalRequests"] += 1
        data["todayRequests"] += 1
        data["totalTokens"] += tokens
        data["todayTokens"] += tokens
        if success:
            data["successfulRequests"] += 1
        else:
            data["failedRequests"] += 1

        hour = str((now or datetime.now()).hour)
        bucket = data["hourlyStats"].setdefault(hour, {"requests": 0, "tokens": 0})
        bucket["requests"] += 1
        bucket["tokens"] += tokens

        endpoint_stats = data["endpoints"].setdefault(endpoint, {"count": 0, "tokens": 0})
        endpoint_stats["count"] += 1
        endpoint_stats["tokens"] += tokens

        if key_id is not None:
            ks = data["keyStats"].setdefault(key_id, {"requests": 0, "success": 0, "failed": 0})
            ks["requests"] += 1
            ks["success" if success else "failed"] += 1

        self.writer.schedule()

    def _snapshot_for_save(self) -> Dict:
        self._data["lastUpdated"] = datetime.now().astimezone().isoformat()
        return copy.deepcopy(self._data)

    def snapshot(self) -> Dict:
        """Return a copy of the current counters."""
        return copy.deepcopy(self._data)

    def flush(self) -> bool:
        return self.writer.flush()

    def summary(self) -> Dict:
        data = self._data
        return {
            "total_requests": data["totalRequests"],
            "successful_requests": data["successfulRequests"],
            "failed_requests": data["failedRequests"],
            "today_requests": data["todayRequests"],
        }
