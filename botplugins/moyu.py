"""Slacker's daily reminder: countdowns to the weekend and public holidays."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

HOLIDAY_NAMES = ("元旦", "春节", "清明节", "劳动节", "端午节", "中秋节", "国庆节")

GREETING = (
    "上午好，摸鱼人！\n工作再累，一定不要忘记摸鱼哦！有事没事起身去茶水间，去厕所，"
    "去廊道走走别老在工位上坐着，钱是老板的,但命是自己的。\n"
)
CLOSING = "上班是帮老板赚钱，摸鱼是赚老板的钱！最后，祝愿天下所有摸鱼人，都能愉快的渡过每一天…"

_RECORD_RE = re.compile(r"(-?\d+)_(-?\d+)_(-?\d+)_(-?\d+)")


@dataclass(frozen=True)
class Holiday:
    """A holiday starting at midnight of date and lasting duration."""

    name: str
    date: datetime
    duration: timedelta

    @classmethod
    def from_record(cls, name: str, record: str) -> "Holiday":
        """Build a holiday from a "days_year_month_day" record."""
        match = _RECORD_RE.fullmatch(record.strip())
        if match is None:
            raise ValueError(f"invalid holiday record: {record!r}")
        days, year, month, day = (int(g) for g in match.groups())
        return cls(name, datetime(year, month, day), timedelta(days=days))

    def describe(self, now: datetime) -> str:
        """Countdown, enjoy or already-passed message relative to now."""
        remaining = self.date - now
        if remaining >= timedelta(0):
            days = remaining.total_seconds() / 3600 / 24.0
            return f"距离{self.name}还有: {days:.2f}天！"
        if remaining + self.duration >= timedelta(0):
            return f"好好享受 {self.name} 假期吧!"
        return f"今年 {self.name} 假期已过"


def weekend(today: date) -> str:
    """Days left until the weekend, or a weekend greeting."""
    weekday = (today.weekday() + 1) % 7  # Sunday is 0
    if weekday in (0, 6):
        return "好好享受周末吧！"
    return f"距离周末还有:{5 - weekday}天！"


def daily_message(holidays: Iterable[Holiday], now: datetime) -> str:
    """The full reminder text for the given moment."""
    lines = "".join(f"{h.describe(now)}\n" for h in holidays)
    return f"{now:%Y-%m-%d}{GREETING}{weekend(now.date())}\n{lines}{CLOSING}"