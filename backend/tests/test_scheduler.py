from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from sentinel.dashboard import Dashboard
from sentinel.scheduler import RefreshScheduler


async def noop():
    return None


def test_add_replace_and_remove_tasks():
    scheduler = RefreshScheduler()
    scheduler.add("earthquake", noop, 3)
    scheduler.add("typhoon", noop, 15)
    scheduler.add("earthquake", noop, 3)

    assert scheduler.names == ["earthquake", "typhoon"]

    scheduler.remove("earthquake")
    scheduler.remove("never-added")
    assert scheduler.names == ["typhoon"]


def test_paused_task_keeps_its_registration():
    scheduler = RefreshScheduler()
    scheduler.add("volcano", noop, 30)
    scheduler.pause_task("volcano")

    assert scheduler.names == ["volcano"]
    scheduler.resume_task("volcano")


def test_dashboard_mount_and_unmount():
    dashboard = Dashboard(scheduler=RefreshScheduler())

    assert set(dashboard.widgets) == {"earthquake", "typhoon", "volcano", "weather", "traffic"}

    dashboard.mount("weather")
    dashboard.mount("earthquake")
    assert dashboard.scheduler.names == ["weather", "earthquake"]

    dashboard.unmount("weather")
    assert dashboard.scheduler.names == ["earthquake"]


def test_snapshot_before_first_refresh():
    snap = Dashboard(scheduler=RefreshScheduler()).snapshot()

    assert snap["earthquake"]["status"] == "IDLE"
    assert snap["earthquake"]["report"] == "Initializing AI Analysis..."
    assert snap["earthquake"]["min_magnitude"] == 1.0
    assert snap["volcano"]["data"] is None


def test_added_task_fires_now_and_then_on_its_interval():
    aps = AsyncIOScheduler(timezone="Asia/Manila")
    scheduler = RefreshScheduler(aps)
    before = datetime.now(ZoneInfo("Asia/Manila"))
    scheduler.add("earthquake", noop, 3)

    job = aps.get_job("earthquake")
    assert before <= job.next_run_time <= datetime.now(ZoneInfo("Asia/Manila"))
    assert job.trigger.interval == timedelta(minutes=3)
