from __future__ import annotations

from datetime import timedelta
from typing import Callable, Dict, Iterator, Mapping, Optional

from celery.schedules import schedule as sched


def build_beat_schedule(every_seconds: int) -> Dict[str, dict]:
    """Build a Celery beat schedule running one alert check every N seconds.

    A single entry covers every asset: the pass batches all active alerts
    into one upstream price request.
    """
    seconds = max(1, int(every_seconds))
    return {
        "check_alerts": {
            "task": "check_alerts",
            "schedule": sched(timedelta(seconds=seconds)),
            # A pass that cannot start before the next tick is dropped, not queued.
            "options": {"expires": seconds},
        }
    }


class LazyBeatSchedule(Mapping[str, dict]):
    """A mapping that builds the beat schedule on first access.

    Construction is deferred until the schedule is actually read, so
    environment variables set after the worker module was imported still
    apply. The factory reads any environment it needs and returns a plain dict.
    """

    def __init__(self, factory: Callable[[], Dict[str, dict]]):
        self._factory = factory
        self._cache: Optional[Dict[str, dict]] = None

    def _ensure(self) -> Dict[str, dict]:
        if self._cache is None:
            self._cache = self._factory()
        return self._cache

    def refresh(self) -> None:
        """Clear the cache so the next access recomputes the schedule."""
        self._cache = None

    def __getitem__(self, key: str) -> dict:
        return self._ensure()[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ensure())

    def __len__(self) -> int:
        return len(self._ensure())

    def __contains__(self, key: object) -> bool:  # type: ignore[override]
        return key in self._ensure()
