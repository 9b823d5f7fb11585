"""Timer records: packed schedule fields, parsing of Chinese date phrases, storage."""

from __future__ import annotations

import hashlib
import sqlite3
import threading
from dataclasses import dataclass

_EN = 0x800000
_MONTH = 0x780000
_DAY = 0x07C000
_WEEK = 0x003800
_HOUR = 0x0007C0
_MINUTE = 0x00003F

_DIGITS = "零一二三四五六七八九十"


@dataclass
class Timer:
    """A group reminder; schedule fields are packed into one integer."""

    id: int = 0
    emdwhm: int = 0
    self_id: int = 0
    grp_id: int = 0
    alert: str = ""
    cron: str = ""
    url: str = ""

    def _field(self, mask: int, shift: int, all_ones: int) -> int:
        value = (self.emdwhm & mask) >> shift
        return -1 if value == all_ones else value

    def _store(self, value: int, shift: int, mask: int) -> None:
        self.emdwhm = ((value << shift) & mask) | (self.emdwhm & (0xFFFFFF ^ mask))

    def en(self) -> bool:
        return self.emdwhm & _EN != 0

    def month(self) -> int:
        return self._field(_MONTH, 19, 0b1111)

    def day(self) -> int:
        return self._field(_DAY, 14, 0b11111)

    def week(self) -> int:
        """Weekday with Sunday as 0, or -1 for every week."""
        return self._field(_WEEK, 11, 0b111)

    def hour(self) -> int:
        return self._field(_HOUR, 6, 0b11111)

    def minute(self) -> int:
        return self._field(_MINUTE, 0, 0b111111)

    def set_en(self, en: bool) -> None:
        if en:
            self.emdwhm |= _EN
        else:
            self.emdwhm &= 0x7FFFFF

    def set_month(self, month: int) -> None:
        self._store(month, 19, _MONTH)

    def set_day(self, day: int) -> None:
        self._store(day, 14, _DAY)

    def set_week(self, week: int) -> None:
        self._store(week, 11, _WEEK)

    def set_hour(self, hour: int) -> None:
        self._store(hour, 6, _HOUR)

    def set_minute(self, minute: int) -> None:
        self._store(minute, 0, _MINUTE)

    def timer_info(self) -> str:
        """Normalised description used for the timer id."""
        if self.cron:
            return f"[{self.grp_id}]{self.cron}"
        return (
            f"[{self.grp_id}]{self.month()}月{self.day()}日{self.week()}周"
            f"{self.hour()}:{self.minute()}"
        )

    def timer_id(self) -> int:
        digest = hashlib.md5(self.timer_info().encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little")

    def insert_into(self, store: "TimerStore") -> None:
        store.insert(self)


class TimerStore:
    """SQLite table holding timers."""

    def __init__(self, path):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        with self._lock, self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS timer ("
                "id INTEGER PRIMARY KEY, emdwhm INTEGER, sid INTEGER, gid INTEGER, "
                "alert TEXT, cron TEXT, url TEXT)"
            )

    def insert(self, timer: Timer) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO timer VALUES (?, ?, ?, ?, ?, ?, ?)",
                (timer.id, timer.emdwhm, timer.self_id, timer.grp_id,
                 timer.alert, timer.cron, timer.url),
            )

    def delete(self, timer_id: int) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM timer WHERE id = ?", (timer_id,))

    def timers(self) -> list[Timer]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, emdwhm, sid, gid, alert, cron, url FROM timer"
            ).fetchall()
        return [Timer(*row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def filled_cron_timer(croncmd: str, alert: str, img: str, botqq: int, gid: int) -> Timer:
    return Timer(self_id=botqq, grp_id=gid, alert=alert, cron=croncmd, url=img)


def filled_timer(date_strs, botqq: int, grp: int, match_date_only: bool) -> Timer:
    """Build a timer from regex groups: month, day/week, hour, minute, url, alert.

    Invalid input yields a disabled timer whose alert explains the problem.
    """
    month_str, day_week, hour_str, minute_str = date_strs[1:5]
    t = Timer()
    mon = chinese_num_to_int(month_str)
    if (mon != -1 and mon <= 0) or mon > 12:
        t.alert = "月份非法！"
        return t
    t.set_month(mon)
    if len(day_week) == 4:
        d = chinese_num_to_int(day_week[0] + day_week[2])
        if (d != -1 and d <= 0) or d > 31:
            t.alert = "日期非法1！"
            return t
        t.set_day(d)
    elif day_week.endswith("日"):
        d = chinese_num_to_int(day_week[:-1])
        if (d != -1 and d <= 0) or d > 31:
            t.alert = "日期非法2！"
            return t
        t.set_day(d)
    elif day_week.startswith("每"):
        t.set_week(-1)
    else:
        rest = day_week[1:]
        w = chinese_num_to_int(rest) if rest else -2
        if w == 7:
            w = 0
        if w < 0 or w > 6:
            t.alert = "星期非法！"
            return t
        t.set_week(w)
    if len(hour_str) == 3:
        hour_str = hour_str[0] + hour_str[2]
    h = chinese_num_to_int(hour_str)
    if h < -1 or h > 23:
        t.alert = "小时非法！"
        return t
    t.set_hour(h)
    if len(minute_str) == 3:
        minute_str = minute_str[0] + minute_str[2]
    mn = chinese_num_to_int(minute_str)
    if mn < -1 or mn > 59:
        t.alert = "分钟非法！"
        return t
    t.set_minute(mn)
    if not match_date_only:
        url = date_strs[5]
        if url:
            t.url = url[1:]
            if not t.url.startswith("http"):
                t.url = "illegal"
                return t
        t.alert = date_strs[6]
        t.set_en(True)
    t.self_id = botqq
    t.grp_id = grp
    return t


def chinese_num_to_int(chars: str) -> int:
    """Convert a one- or two-character number (digits or Chinese); "每x" means -x."""
    if not chars:
        raise ValueError("empty number")
    if chars[0].isdecimal():
        try:
            return int(chars)
        except ValueError:
            return 0
    if chars[0] == "每":
        return -chinese_char_to_int(chars[1]) if len(chars) == 2 else -1
    if len(chars) == 1:
        return chinese_char_to_int(chars[0])
    ten = chinese_char_to_int(chars[0])
    if ten != 10:
        ten *= 10
    ge = chinese_char_to_int(chars[1])
    if ge == 10:
        ge = 0
    return ten + ge


def chinese_char_to_int(c: str) -> int:
    """Map one Chinese numeral to 0..10; 日 and 天 mean Sunday (7)."""
    if c in ("日", "天"):
        return 7
    index = _DIGITS.find(c)
    return index if index >= 0 else 0