"""In-process scheduler for single-process deployments.

Fires a job at fixed hours of the day (06:00 and 18:00 UTC by default).
Deployments running Celery use the beat schedule in unjobs.tasks.celery_app
instead. Missed slots (e.g. after a long cycle) are not replayed: the job
fires once and the next slot is computed from the current time.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable

from unjobs.config import get_settings
from unjobs.models.base import utcnow

logger = logging.getLogger(__name__)

MAX_SLEEP_SECONDS = 60.0


class Scheduler:
    def __init__(
        self,
        job: Callable[[], Any],
        hours: list[int] | tuple[int, ...] | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        hours = sorted(set(hours if hours is not None else get_settings().ingest_hours))
        if not hours or any(h < 0 or h > 23 for h in hours):
            raise ValueError(f"Schedule hours must be within 0-23: {hours}")
        self.job = job
        self.hours = hours
        self.clock = clock
        self.sleep = sleep
        self._next_fire: datetime | None = None

    def next_fire(self, after: datetime) -> datetime:
        """First scheduled slot strictly after the given time."""
        for day_offset in (0, 1):
            day = after + timedelta(days=day_offset)
            for hour in self.hours:
                slot = day.replace(hour=hour, minute=0, second=0, microsecond=0)
                if slot > after:
                    return slot
        raise RuntimeError("unreachable: no slot within two days")

    def run_pending(self) -> bool:
        """Fire the job if its slot has come. Returns True if it fired."""
        now = self.clock()
        if self._next_fire is None:
            self._next_fire = self.next_fire(now)
            logger.info(f"Next ingestion cycle at {self._next_fire.isoformat()}")
        if now < self._next_fire:
            return False

        logger.info(f"Firing scheduled job for slot {self._next_fire.isoformat()}")
        try:
            self.job()
        except Exception as e:
            logger.error(f"Scheduled job failed: {e}")

        self._next_fire = self.next_fire(self.clock())
        logger.info(f"Next ingestion cycle at {self._next_fire.isoformat()}")
        return True

    def run_forever(self, max_cycles: int | None = None) -> int:
        """Loop until max_cycles jobs have fired (forever when None)."""
        fired = 0
        while max_cycles is None or fired < max_cycles:
            if self.run_pending():
                fired += 1
                continue
            remaining = (self._next_fire - self.clock()).total_seconds()
            self.sleep(min(max(remaining, 1.0), MAX_SLEEP_SECONDS))
        return fired
