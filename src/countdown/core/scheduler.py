"""APScheduler setup for the poll and display timers."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler


def create_scheduler() -> AsyncIOScheduler:
    """Create the scheduler shared by every poll stream.

    Jobs are coroutines so they run on the event loop, never in a worker
    thread. Missed runs collapse into one.
    """
    return AsyncIOScheduler(job_defaults={"coalesce": True, "max_instances": 1})
