from datetime import date, datetime, timedelta

import pytest

from botplugins.moyu import CLOSING, HOLIDAY_NAMES, Holiday, daily_message, weekend

RECORDS = {
    "元旦": "1_2023_1_1",
    "春节": "7_2023_1_21",
    "清明节": "1_2022_4_3",
    "劳动节": "1_2022_4_30",
    "端午节": "1_2022_6_3",
    "中秋节": "1_2022_9_10",
    "国庆节": "7_2022_10_1",
}


def test_from_record_parses_fields():
    h = Holiday.from_record("春节", RECORDS["春节"])
    assert h.name == "春节"
    assert h.date == datetime(2023, 1, 21)
    assert h.duration == timedelta(days=7)


def test_from_record_rejects_garbage():
    with pytest.raises(ValueError):
        Holiday.from_record("元旦", "not a record")


def test_describe_countdown():
    h = Holiday.from_record("元旦", RECORDS["元旦"])
    assert h.describe(datetime(2022, 12, 31)) == "距离元旦还有: 1.00天！"


def test_describe_during_holiday():
    h = Holiday.from_record("春节", RECORDS["春节"])
    assert h.describe(datetime(2023, 1, 25, 12)) == "好好享受 春节 假期吧!"


def test_describe_after_holiday():
    h = Holiday.from_record("元旦", RECORDS["元旦"])
    assert h.describe(datetime(2023, 1, 3)) == "今年 元旦 假期已过"


def test_weekend_days():
    assert weekend(date(2023, 1, 7)) == "好好享受周末吧！"
    assert weekend(date(2023, 1, 8)) == "好好享受周末吧！"
    assert weekend(date(2023, 1, 2)) == "距离周末还有:4天！"
    assert weekend(date(2023, 1, 6)) == "距离周末还有:0天！"


def test_daily_message_layout():
    holidays = [Holiday.from_record(n, RECORDS[n]) for n in HOLIDAY_NAMES]
    now = datetime(2022, 12, 31, 10)
    text = daily_message(holidays, now)
    assert text.startswith("2022-12-31上午好，摸鱼人！")
    assert text.endswith(CLOSING)
    for h in holidays:
        assert h.describe(now) + "\n" in text
    assert "好好享受周末吧！\n" in text