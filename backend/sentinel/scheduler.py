import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .settings import settings

logger = logging.getLogger(__name__)

Job = Callable[[], Union[Awaitable[None], None]]

# max_instances=2 lets a slow cycle overlap the next one; the later write wins.
# coalesce=True rolls up missed executions into one.
JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 2,
    "misfire_grace_time": 60,
}


class RefreshScheduler:
    """Named recurring tasks. Each runs once right away, then on its own interval."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self._scheduler = scheduler or AsyncIOScheduler(timezone=settings.app_timezone, job_defaults=JOB_DEFAULTS)
        self._intervals: dict[str, float] = {}

    @property
    def names(self) -> list[str]:
        return list(self._intervals)

    def add(self, name: str, func: Job, minutes: float, run_now: bool = True) -> None:
        extra = {}
        if run_now:
            # An explicit None would add the job paused, so only pass it when firing immediately
            extra["next_run_time"] = datetime.now(self._scheduler.timezone)
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(minutes=minutes, timezone=settings.app_timezone),
            id=name,
            name=name,
            replace_existing=True,
            **extra,
        )
        self._intervals[name] = minutes
        logger.info(f"Scheduled {name} every {minutes} min")

    def remove(self, name: str) -> None:
        if name in self._intervals:
            self._scheduler.remove_job(name)
            del self._intervals[name]

    def pause_task(self, name: str) -> None:
        """Widget unmounted: stop firing, keep the registration."""
        self._scheduler.pause_job(name)

    def resume_task(self, name: str) -> None:
        self._scheduler.resume_job(name)

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
