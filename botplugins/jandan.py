"""Collection of jandan.net "boring pictures" stored in SQLite."""

from __future__ import annotations

import re
import sqlite3
import threading
from dataclasses import dataclass, field
from typing import Callable

import lxml.html

API = "http://jandan.net/pic"

_PAGE_XPATH = "//*[@id='comments']/div[2]/div/span[@class='current-comment-page']/text()"
_PICTURE_XPATH = "//*[@class='view_img_link']"
_PREVIOUS_XPATH = (
    "//*[@id='comments']/div[@class='comments']/div[@class='cp-pagenavi']"
    "/a[@class='previous-comment-page']"
)
_NUMBER_RE = re.compile(r"\d+")

_MASK64 = 0xFFFFFFFFFFFFFFFF
_ISO_POLY = 0xD800000000000000


def _make_table() -> tuple[int, ...]:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            crc = (crc >> 1) ^ _ISO_POLY if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _make_table()


def picture_id(url: str) -> int:
    """CRC-64 (ISO polynomial) of the URL, as an unsigned 64-bit number."""
    crc = _MASK64
    for byte in url.encode("utf-8"):
        crc = _TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ _MASK64


def _signed(value: int) -> int:
    return value - (1 << 64) if value >= 1 << 63 else value


class PictureStore:
    """SQLite table of picture URLs keyed by their checksum."""

    def __init__(self, path):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        with self._lock, self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS picture (id INTEGER PRIMARY KEY, url TEXT)"
            )

    def add(self, url: str) -> int:
        """Store a URL and return its id."""
        pid = picture_id(url)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO picture (id, url) VALUES (?, ?)",
                (_signed(pid), url),
            )
        return pid

    def contains(self, pid: int) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM picture WHERE id = ?", (_signed(pid),)
            ).fetchone()
        return row is not None

    def random_url(self) -> str:
        """A random stored URL; LookupError when the store is empty."""
        with self._lock:
            row = self._conn.execute(
                "SELECT url FROM picture ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError("no pictures stored")
        return row[0]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM picture").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()


@dataclass
class JandanPage:
    """What one listing page offers."""

    pictures: list[str] = field(default_factory=list)
    page: int | None = None
    previous: str | None = None


def parse_page(html: str) -> JandanPage:
    """Picture URLs, current page number and older-page URL of a listing page."""
    doc = lxml.html.fromstring(html)
    pictures = [
        "https:" + href
        for href in (el.get("href") for el in doc.xpath(_PICTURE_XPATH))
        if href is not None
    ]
    page = None
    texts = doc.xpath(_PAGE_XPATH)
    if texts:
        match = _NUMBER_RE.search(str(texts[0]))
        if match:
            page = int(match.group())
    previous = None
    links = doc.xpath(_PREVIOUS_XPATH)
    if links and links[0].get("href") is not None:
        previous = "https:" + links[0].get("href")
    return JandanPage(pictures, page, previous)


def update_pictures(store: PictureStore, fetch: Callable[[str], str]) -> int:
    """Walk the listing from the newest page until a known picture turns up.

    fetch(url) returns the page HTML. Returns the number of pictures added.
    """
    first = parse_page(fetch(API))
    if first.page is None:
        raise ValueError("page count not found")
    total = first.page
    url = API
    added = 0
    for i in range(total):
        page = parse_page(fetch(url))
        for pic in page.pictures:
            if store.contains(picture_id(pic)):
                return added
            store.add(pic)
            added += 1
        if i != total - 1:
            if page.previous is None:
                raise ValueError("previous page link not found")
            url = page.previous
    return added