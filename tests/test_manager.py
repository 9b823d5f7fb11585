import hashlib
from random import Random

import pytest

from botplugins.manager import (
    GIST_FLAG,
    MAX_BAN_MINUTES,
    VERIFY_FLAG,
    ManagerStore,
    ban_minutes,
    check_new_user,
    parse_gist_answer,
    pick_lucky,
    set_flag,
    unescape_forward,
    welcome_to_cq,
)


@pytest.fixture
def store(tmp_path):
    s = ManagerStore(tmp_path / "config.db")
    yield s
    s.close()


def test_welcome_round_trip_and_replace(store):
    assert store.welcome(5) is None
    store.set_welcome(5, "hi {at}")
    assert store.welcome(5) == "hi {at}"
    store.set_welcome(5, "bye")
    assert store.welcome(5) == "bye"
    assert store.farewell(5) is None


def test_farewell_separate_from_welcome(store):
    store.set_farewell(7, "see you")
    assert store.farewell(7) == "see you"
    assert store.welcome(7) is None


def test_members(store):
    assert not store.has_member("alice")
    store.add_member(1, "alice")
    assert store.has_member("alice")


def test_welcome_to_cq():
    text = welcome_to_cq("{at} {nickname} {avatar} {uid} {gid} {groupname}", 10001, "Bob", 42, "G")
    assert text == (
        "[CQ:at,qq=10001] Bob "
        "[CQ:image,file=http://q4.qlogo.cn/g?b=qq&nk=10001&s=640] 10001 42 G"
    )


def test_ban_minutes_units_and_cap():
    assert ban_minutes(3, "分钟") == 3
    assert ban_minutes(3, "") == 3
    assert ban_minutes(2, "小时") == ban_minutes(120, "分钟")
    assert ban_minutes(1, "天") == ban_minutes(24, "h")
    assert ban_minutes(100, "天") == MAX_BAN_MINUTES
    assert ban_minutes(43200, "m") == 43199


def test_unescape_forward():
    assert unescape_forward("&#91;CQ:face,id=1&#93;") == "[CQ:face,id=1]"


def test_set_flag_round_trip():
    on = set_flag(0, "开启", VERIFY_FLAG)
    assert on & VERIFY_FLAG
    assert set_flag(on, "关闭", VERIFY_FLAG) == 0
    both = set_flag(on, "启用", GIST_FLAG)
    assert set_flag(both, "禁用", GIST_FLAG) == on


def test_set_flag_unknown_option():
    with pytest.raises(ValueError):
        set_flag(0, "随便", VERIFY_FLAG)


def test_parse_gist_answer():
    assert parse_gist_answer("问题：gist\n答案：alice/abc123") == ("alice", "abc123")
    with pytest.raises(ValueError):
        parse_gist_answer("答案：/abc")
    with pytest.raises(ValueError):
        parse_gist_answer("答案：noslash")


def test_check_new_user_accepts_recent(store):
    seen = []

    def fetch(url):
        seen.append(url)
        return b"1000"

    ok, reason = check_new_user(store, 9, 123, "alice", "abc", fetch, now=1100)
    assert (ok, reason) == (True, "")
    digest = hashlib.md5(b"123").hexdigest()
    assert seen == [f"https://gist.githubusercontent.com/alice/abc/raw/{digest}"]
    assert store.has_member("alice")
    again = check_new_user(store, 9, 123, "alice", "abc", fetch, now=1100)
    assert again == (False, "该github用户已入群")


def test_check_new_user_rejects(store):
    assert check_new_user(store, 1, 2, "bob", "h", lambda u: "1000", now=5000) == (
        False, "时间戳超时")
    ok, reason = check_new_user(store, 1, 2, "bob", "h", lambda u: "abc", now=5000)
    assert not ok and reason == "时间戳格式错误: abc"

    def broken(url):
        raise ConnectionError("down")

    ok, reason = check_new_user(store, 1, 2, "bob", "h", broken, now=5000)
    assert not ok and reason.startswith("无法连接到gist: ")
    assert not store.has_member("bob")


def test_pick_lucky_from_recent_ten():
    members = [{"user_id": i, "last_sent_time": i} for i in range(12)]
    for seed in range(20):
        who = pick_lucky(members, Random(seed))
        assert who["last_sent_time"] >= 2


def test_pick_lucky_empty():
    with pytest.raises(ValueError):
        pick_lucky([], Random(0))