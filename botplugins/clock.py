"""Scheduling of timers: wake-time computation, cron expressions and a running clock."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable

from .timer import Timer, TimerStore


def _go_weekday(d: datetime) -> int:
    return (d.weekday() + 1) % 7


def _normalized(year, month, day, hour, minute, second, micro, tzinfo=None) -> datetime:
    """Build a datetime, carrying out-of-range months and days over."""
    y, m = divmod(year * 12 + (month - 1), 12)
    base = datetime(y, m + 1, 1, tzinfo=tzinfo)
    return base + timedelta(days=day - 1, hours=hour, minutes=minute,
                            seconds=second, microseconds=micro)


def _add_date(d: datetime, years: int, months: int, days: int) -> datetime:
    return _normalized(d.year + years, d.month + months, d.day + days,
                       d.hour, d.minute, d.second, d.microsecond, d.tzinfo)


def first_week(date: datetime, week: int) -> datetime:
    """First day of date's month falling on the weekday (Sunday is 0)."""
    d = _add_date(date, 0, 0, 1 - date.day)
    while _go_weekday(d) != week:
        d = _add_date(d, 0, 0, 1)
    return d


def next_wake_time(timer: Timer, now: datetime) -> datetime:
    """Moment at which a non-cron timer should next wake up."""
    m, d, h, mn, w = timer.month(), timer.day(), timer.hour(), timer.minute(), timer.week()
    unit = timedelta(0)
    if mn >= 0:
        if h < 0:
            unit = timedelta(hours=1)
        elif d < 0 or w < 0:
            unit = timedelta(hours=24)
        elif d == 0 and w >= 0:
            delta = timedelta(days=w - _go_weekday(now))
            if delta < timedelta(0):
                delta = timedelta(days=7)
            unit += delta
        elif m < 0:
            unit = timedelta(microseconds=-1)
    else:
        unit = timedelta(minutes=1)

    stable = 0
    if mn < 0:
        mn = now.minute
    if h < 0:
        h = now.hour
    else:
        stable |= 0x8
    if d < 0:
        d = now.day
    elif d > 0:
        stable |= 0x4
    else:
        d = now.day
        if w >= 0:
            stable |= 0x2
    if m < 0:
        m = now.month
    else:
        stable |= 0x1

    if stable == 0b0101:
        if timer.day() != now.day or timer.month() != now.month:
            h = 0
    elif stable == 0b1001:
        if timer.month() != now.month:
            d = 0
    elif stable == 0b0001:
        if timer.month() != now.month:
            d = 0
            h = 0

    date = _normalized(now.year, m, d, h, mn, now.second, now.microsecond, now.tzinfo)
    if unit > timedelta(0):
        date += unit
    if date <= now:
        if timer.month() < 0:
            if timer.day() > 0 or (timer.day() == 0 and timer.week() >= 0):
                date = _add_date(date, 0, 1, 0)
            elif timer.day() < 0 or timer.week() < 0:
                if timer.hour() > 0:
                    date = _add_date(date, 0, 0, 1)
                elif timer.minute() > 0:
                    date += timedelta(hours=1)
        else:
            date = _add_date(date, 1, 0, 0)
    if stable & 0x8 and date.hour != h:
        if stable & 0x4 == 0:
            date = _add_date(date, 0, 0, 1) - timedelta(hours=1)
        elif stable & 0x2 == 0:
            date = _add_date(date, 0, 0, 7) - timedelta(hours=1)
        else:
            date = _add_date(date, 1, 0, 0) - timedelta(hours=1)
    if stable & 0x4 and date.day != d:
        date = _add_date(date, 1, 0, -1)
    if stable & 0x2 and _go_weekday(date) != w:
        date = first_week(_add_date(date, 1, 0, 0), w)
    if date <= now:
        date = now + timedelta(minutes=1)
    return date


def should_fire(timer: Timer, now: datetime) -> bool:
    """Whether a woken non-cron timer matches the current moment."""
    if not (timer.month() < 0 or timer.month() == now.month):
        return False
    if timer.day() < 0 or timer.day() == now.day:
        pass
    elif timer.day() == 0:
        if not (timer.week() < 0 or timer.week() == _go_weekday(now)):
            return False
    else:
        return False
    return (timer.hour() < 0 or timer.hour() == now.hour) and (
        timer.minute() < 0 or timer.minute() == now.minute
    )


_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}
_MONTH_NAMES = {n: i + 1 for i, n in enumerate(
    "JAN FEB MAR APR MAY JUN JUL AUG SEP OCT NOV DEC".split())}
_DOW_NAMES = {n: i for i, n in enumerate("SUN MON TUE WED THU FRI SAT".split())}


def _parse_field(text: str, lo: int, hi: int, names: dict[str, int]) -> tuple[set[int], bool]:
    def value(token: str) -> int:
        token = token.upper()
        if token in names:
            return names[token]
        if not token.isdigit():
            raise ValueError(f"invalid cron value {token!r}")
        return int(token)

    values: set[int] = set()
    star = text.startswith(("*", "?"))
    for part in text.split(","):
        rng, _, step_text = part.partition("/")
        step = int(step_text) if step_text.isdigit() else (1 if not step_text else 0)
        if step <= 0:
            raise ValueError(f"invalid cron step in {part!r}")
        if rng in ("*", "?"):
            start, end = lo, hi
        elif "-" in rng:
            a, b = rng.split("-", 1)
            start, end = value(a), value(b)
        else:
            start = value(rng)
            end = hi if step_text else start
        if start < lo or end > hi or start > end:
            raise ValueError(f"cron value out of range in {part!r}")
        values.update(range(start, end + 1, step))
    return values, star


class CronSchedule:
    """Five-field cron expression (minute hour day month weekday)."""

    def __init__(self, expr: str):
        expr = _DESCRIPTORS.get(expr.strip(), expr.strip())
        fields = expr.split()
        if len(fields) != 5:
            raise ValueError(f"expected 5 cron fields, got {len(fields)}: {expr!r}")
        self.minutes, _ = _parse_field(fields[0], 0, 59, {})
        self.hours, _ = _parse_field(fields[1], 0, 23, {})
        self.days, self._dom_star = _parse_field(fields[2], 1, 31, {})
        self.months, _ = _parse_field(fields[3], 1, 12, _MONTH_NAMES)
        dows, self._dow_star = _parse_field(fields[4].replace("7", "0") if fields[4] == "7" else fields[4], 0, 7, _DOW_NAMES)
        self.weekdays = {d % 7 for d in dows}

    def _day_matches(self, t: datetime) -> bool:
        dom = t.day in self.days
        dow = _go_weekday(t) in self.weekdays
        if self._dom_star or self._dow_star:
            return dom and dow
        return dom or dow

    def next_after(self, moment: datetime) -> datetime:
        """First matching minute strictly after moment."""
        t = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = moment + timedelta(days=366 * 5)
        while t < limit:
            if t.month not in self.months:
                t = _normalized(t.year, t.month + 1, 1, 0, 0, 0, 0, t.tzinfo)
            elif not self._day_matches(t):
                t = t.replace(hour=0, minute=0) + timedelta(days=1)
            elif t.hour not in self.hours:
                t = t.replace(minute=0) + timedelta(hours=1)
            elif t.minute not in self.minutes:
                t += timedelta(minutes=1)
            else:
                return t
        raise ValueError("cron expression never fires")


def _segments(timer: Timer) -> list[dict]:
    segments = [{"type": "at", "data": {"qq": "all"}},
                {"type": "text", "data": {"text": timer.alert}}]
    if timer.url:
        segments.append({"type": "image", "data": {"file": timer.url, "cache": "0"}})
    return segments


class Clock:
    """Runs registered timers in background threads and keeps them in a store.

    send(group_id, segments) delivers a reminder message.
    """

    def __init__(self, store: TimerStore, send: Callable[[int, list], None]):
        self._store = store
        self._send = send
        self._timers: dict[int, Timer] = {}
        self._stops: dict[int, threading.Event] = {}
        self._lock = threading.RLock()
        for timer in store.timers():
            self.register_timer(timer, False)

    def register_timer(self, timer: Timer, save: bool) -> bool:
        if save:
            timer.id = timer.timer_id()
        key = timer.id
        existing = self.get_timer(key)
        if existing is not None and existing is not timer:
            existing.set_en(False)
            with self._lock:
                old = self._stops.pop(key, None)
            if old is not None:
                old.set()
        stop = threading.Event()
        if timer.cron:
            try:
                schedule = CronSchedule(timer.cron)
            except ValueError as exc:
                timer.alert = str(exc)
                return False
            if save:
                self.add_timer_into_db(timer)
            self.add_timer_into_map(timer)
            target, args = self._run_cron, (timer, schedule, stop)
        else:
            if save:
                self.add_timer_into_db(timer)
            self.add_timer_into_map(timer)
            if not timer.en():
                return False
            target, args = self._run_plain, (timer, stop)
        with self._lock:
            self._stops[key] = stop
        threading.Thread(target=target, args=args, daemon=True).start()
        return True

    def _deliver(self, timer: Timer) -> None:
        self._send(timer.grp_id, _segments(timer))

    def _run_cron(self, timer: Timer, schedule: CronSchedule, stop: threading.Event) -> None:
        while not stop.is_set():
            now = datetime.now()
            wake = schedule.next_after(now)
            if stop.wait((wake - now).total_seconds()):
                return
            self._deliver(timer)

    def _run_plain(self, timer: Timer, stop: threading.Event) -> None:
        while timer.en() and not stop.is_set():
            now = datetime.now()
            wake = next_wake_time(timer, now)
            if stop.wait(max(0.0, (wake - now).total_seconds())):
                return
            if timer.en() and should_fire(timer, datetime.now()):
                self._deliver(timer)

    def cancel_timer(self, key: int) -> bool:
        timer = self.get_timer(key)
        if timer is None:
            return False
        if not timer.cron:
            timer.set_en(False)
        with self._lock:
            stop = self._stops.pop(key, None)
            self._timers.pop(key, None)
            self._store.delete(key)
        if stop is not None:
            stop.set()
        return True

    def list_timers(self, grp_id: int) -> list[str]:
        with self._lock:
            timers = list(self._timers.values())
        result = []
        for timer in timers:
            if timer.grp_id != grp_id:
                continue
            info = timer.timer_info()
            msg = info[info.index("]") + 1:] + "\n"
            msg = msg.replace("-1", "每")
            msg = msg.replace("月0日0周", "月周天")
            msg = msg.replace("月0日", "月")
            msg = msg.replace("日0周", "日")
            result.append(msg)
        return result

    def get_timer(self, key: int) -> Timer | None:
        with self._lock:
            return self._timers.get(key)

    def add_timer_into_db(self, timer: Timer) -> None:
        with self._lock:
            self._store.insert(timer)

    def add_timer_into_map(self, timer: Timer) -> None:
        with self._lock:
            self._timers[timer.id] = timer

    def close(self) -> None:
        """Stop all running timers."""
        with self._lock:
            stops = list(self._stops.values())
            self._stops.clear()
        for stop in stops:
            stop.set()