from datetime import datetime

import pytest

from botplugins.clock import Clock, CronSchedule, first_week, next_wake_time, should_fire
from botplugins.timer import Timer, TimerStore, filled_cron_timer, filled_timer


def _timer(month=-1, day=-1, week=-1, hour=-1, minute=-1):
    t = Timer()
    t.set_month(month)
    t.set_day(day)
    t.set_week(week)
    t.set_hour(hour)
    t.set_minute(minute)
    t.set_en(True)
    return t


def test_weekly_wake_time_from_source_case():
    t = _timer(month=-1, day=0, week=6, hour=16, minute=30)
    now = datetime(2022, 6, 8, 10, 0, 0)
    wake = next_wake_time(t, now)
    assert wake > now
    assert wake == datetime(2022, 6, 11, 16, 30, 0)


def test_daily_wake_time():
    t = _timer(hour=8, minute=0)
    assert next_wake_time(t, datetime(2022, 6, 10, 7, 0)) == datetime(2022, 6, 11, 8, 0)


def test_hourly_wake_time():
    t = _timer(minute=30)
    assert next_wake_time(t, datetime(2022, 6, 10, 7, 10, 5)) == datetime(2022, 6, 10, 8, 30, 5)


def test_first_week():
    assert first_week(datetime(2022, 6, 15), 0) == datetime(2022, 6, 5)


def test_should_fire():
    t = _timer(hour=8, minute=0)
    assert should_fire(t, datetime(2022, 6, 10, 8, 0, 30)) is True
    assert should_fire(t, datetime(2022, 6, 10, 8, 1)) is False


def test_cron_schedule():
    assert CronSchedule("30 8 * * *").next_after(datetime(2022, 6, 10, 9, 0)) == datetime(2022, 6, 11, 8, 30)
    assert CronSchedule("*/15 * * * *").next_after(datetime(2022, 6, 10, 10, 7)) == datetime(2022, 6, 10, 10, 15)
    with pytest.raises(ValueError):
        CronSchedule("bad")


def test_clock_lists_source_timer(tmp_path):
    store = TimerStore(tmp_path / "t.db")
    clock = Clock(store, lambda gid, segs: None)
    t = filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False)
    clock.register_timer(t, True)
    assert clock.list_timers(0) == ["12月1周12:0\n"]
    assert len(store.timers()) == 1
    clock.close()
    store.close()


def test_clock_cron_register_and_cancel(tmp_path):
    store = TimerStore(tmp_path / "t.db")
    clock = Clock(store, lambda gid, segs: None)
    t = filled_cron_timer("0 8 * * *", "hi", "", 0, 5)
    assert clock.register_timer(t, True) is True
    assert clock.list_timers(5) == ["0 8 * * *\n"]
    assert clock.get_timer(t.id) is t
    assert clock.cancel_timer(t.id) is True
    assert clock.get_timer(t.id) is None
    assert clock.cancel_timer(t.id) is False
    assert store.timers() == []
    clock.close()
    store.close()


def test_clock_rejects_bad_cron(tmp_path):
    store = TimerStore(tmp_path / "t.db")
    clock = Clock(store, lambda gid, segs: None)
    t = filled_cron_timer("nonsense", "hi", "", 0, 5)
    assert clock.register_timer(t, True) is False
    assert t.alert != "hi"
    clock.close()
    store.close()