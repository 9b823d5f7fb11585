"""Group management helpers: greetings, bans, feature flags and gist-verified joins."""

from __future__ import annotations

import hashlib
import re
import sqlite3
import threading
import time
from random import Random
from typing import Callable

import requests

MAX_BAN_MINUTES = 43199
GIST_RAW = "https://gist.githubusercontent.com/{user}/{hash}/raw/{file}"
GIST_WINDOW_SECONDS = 600

VERIFY_FLAG = 0x1
GIST_FLAG = 0x10

_ENABLE = ("开启", "打开", "启用")
_DISABLE = ("关闭", "关掉", "禁用")
_INT64_MASK = 0x7FFFFFFF_FFFFFFFF

_HOUR_UNITS = ("小时", "hour", "hours", "h")
_DAY_UNITS = ("天", "day", "days", "d")

_ANSWER_MARK = "答案："
_INT_RE = re.compile(r"[+-]?\d+")


class ManagerStore:
    """SQLite tables for welcome and farewell messages and verified members."""

    def __init__(self, path):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        with self._lock, self._conn:
            for table in ("welcome", "farewell"):
                self._conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {table} (gid INTEGER PRIMARY KEY, msg TEXT)"
                )
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS member (qq INTEGER PRIMARY KEY, ghun TEXT)"
            )

    def _set(self, table: str, gid: int, msg: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT OR REPLACE INTO {table} (gid, msg) VALUES (?, ?)", (gid, msg)
            )

    def _get(self, table: str, gid: int) -> str | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT msg FROM {table} WHERE gid = ?", (gid,)
            ).fetchone()
        return row[0] if row else None

    def set_welcome(self, gid: int, msg: str) -> None:
        self._set("welcome", gid, msg)

    def welcome(self, gid: int) -> str | None:
        """Stored welcome template of a group, or None."""
        return self._get("welcome", gid)

    def set_farewell(self, gid: int, msg: str) -> None:
        self._set("farewell", gid, msg)

    def farewell(self, gid: int) -> str | None:
        """Stored farewell template of a group, or None."""
        return self._get("farewell", gid)

    def has_member(self, ghun: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM member WHERE ghun = ?", (ghun,)
            ).fetchone()
        return row is not None

    def add_member(self, qq: int, ghun: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO member (qq, ghun) VALUES (?, ?)", (qq, ghun)
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def welcome_to_cq(template: str, uid: int, nickname: str, gid: int, group_name: str) -> str:
    """Expand {at} {nickname} {avatar} {uid} {gid} {groupname} into CQ text."""
    uid_s = str(uid)
    replacements = (
        ("{at}", f"[CQ:at,qq={uid_s}]"),
        ("{nickname}", nickname),
        ("{avatar}", f"[CQ:image,file=http://q4.qlogo.cn/g?b=qq&nk={uid_s}&s=640]"),
        ("{uid}", uid_s),
        ("{gid}", str(gid)),
        ("{groupname}", group_name),
    )
    text = template
    for key, value in replacements:
        text = text.replace(key, value)
    return text


def ban_minutes(amount: int, unit: str) -> int:
    """Ban length in minutes; unknown units mean minutes, capped below a month."""
    minutes = amount
    if unit in _HOUR_UNITS:
        minutes *= 60
    elif unit in _DAY_UNITS:
        minutes *= 60 * 24
    return MAX_BAN_MINUTES if minutes >= 43200 else minutes


def unescape_forward(content: str) -> str:
    """Undo the bracket escaping of CQ codes in forwarded text."""
    return content.replace("&#91;", "[").replace("&#93;", "]")


def set_flag(data: int, option: str, bit: int) -> int:
    """Switch a feature bit on or off according to a Chinese option word."""
    if option in _ENABLE:
        return data | bit
    if option in _DISABLE:
        return data & ~bit & _INT64_MASK
    raise ValueError(f"unknown option: {option}")


def parse_gist_answer(comment: str) -> tuple[str, str]:
    """Split a join-request answer of the form user/gisthash."""
    _, mark, rest = comment.partition(_ANSWER_MARK)
    answer = rest if mark else comment
    divider = answer.find("/")
    if divider <= 0:
        raise ValueError("格式错误!")
    return answer[:divider], answer[divider + 1:]


def _http_get(url: str) -> bytes:
    response = requests.get(url, timeout=30)
    response.raise_for_status()
    return response.content


def check_new_user(
    store: ManagerStore,
    qq: int,
    gid: int,
    ghun: str,
    gist_hash: str,
    fetch: Callable[[str], bytes | str] = _http_get,
    now: float | None = None,
) -> tuple[bool, str]:
    """Verify a join request against a gist holding a recent unix timestamp.

    Returns (accepted, reason); an accepted user is recorded in the store.
    """
    if store.has_member(ghun):
        return False, "该github用户已入群"
    file_name = hashlib.md5(str(gid).encode("utf-8")).hexdigest()
    url = GIST_RAW.format(user=ghun, hash=gist_hash, file=file_name)
    try:
        data = fetch(url)
    except Exception as exc:  # any transport failure rejects the request
        return False, f"无法连接到gist: {exc}"
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    if not _INT_RE.fullmatch(text):
        return False, "时间戳格式错误: " + text
    stamp = int(text)
    current = int(time.time() if now is None else now)
    if abs(current - stamp) < GIST_WINDOW_SECONDS:
        store.add_member(qq, ghun)
        return True, ""
    return False, "时间戳超时"


def pick_lucky(members: list[dict], rng: Random | None = None) -> dict:
    """Pick one of the ten most recently active members at random."""
    if not members:
        raise ValueError("no members")
    rng = rng or Random()
    ordered = sorted(members, key=lambda m: int(m.get("last_sent_time", 0)))
    return rng.choice(ordered[-10:])