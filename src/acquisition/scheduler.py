import logging
import time
from dataclasses import dataclass
from datetime import datetime, time as time_of_day, timedelta
from typing import Callable

from acquisition.domain import RunOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyCadence:
    """Fires once a day at a fixed local time-of-day."""
    at: time_of_day

    def next_fire_after(self, now: datetime) -> datetime:
        candidate = now.replace(hour=self.at.hour, minute=self.at.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


class Scheduler:
    """
    Invokes `job` on every cadence tick.

    Invocations are sequential: a run that outlasts the cadence delays the
    next trigger rather than overlapping it. A failing run is logged and
    never stops the loop.
    """

    def __init__(
        self,
        *,
        job: Callable[[], RunOutcome],
        cadence: DailyCadence,
        idle_sleep_seconds: float = 30.0,
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.job = job
        self.cadence = cadence
        self.idle_sleep_seconds = idle_sleep_seconds
        self._now = now
        self._sleep = sleep

    def fire(self) -> RunOutcome | None:
        logger.info("Scheduled task started at %s", self._now().isoformat(timespec="seconds"))
        try:
            outcome = self.job()
        except Exception:
            logger.exception("Error running acquisition job")
            return None

        log = logger.info if outcome.ok else logger.warning
        log("Run finished: status=%s rows=%s reason=%s", outcome.status.value, outcome.rows_written, outcome.reason)
        return outcome

    def serve(self, *, run_on_start: bool = False, max_runs: int | None = None) -> int:
        """Blocks, firing the job on schedule. Returns the number of runs performed."""
        runs = 0
        if run_on_start:
            self.fire()
            runs += 1

        while max_runs is None or runs < max_runs:
            next_fire = self.cadence.next_fire_after(self._now())
            logger.info("Next run scheduled at %s", next_fire.isoformat(timespec="minutes"))

            while (remaining := (next_fire - self._now()).total_seconds()) > 0:
                self._sleep(min(remaining, self.idle_sleep_seconds))

            self.fire()
            runs += 1

        return runs
