"""Senso-ji fortune slips: images and stored interpretations."""

from __future__ import annotations

import sqlite3
import threading

IMAGE_BED = "https://gitcode.net/u011570312/senso-ji-omikuji/-/raw/main/{}_{}.jpg"


def omikuji_image_urls(number: int) -> tuple[str, str]:
    """Front and back image URLs of fortune slip number."""
    return IMAGE_BED.format(number, 0), IMAGE_BED.format(number, 1)


class KujiStore:
    """SQLite table of interpretation texts keyed by slip number."""

    def __init__(self, path):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        with self._lock, self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kuji (id INTEGER PRIMARY KEY, text TEXT)"
            )

    def text(self, number: int) -> str:
        """Interpretation of slip number; LookupError if it is not stored."""
        with self._lock:
            row = self._conn.execute(
                "SELECT text FROM kuji WHERE id = ?", (number,)
            ).fetchone()
        if row is None:
            raise LookupError(f"no kuji numbered {number}")
        return row[0]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM kuji").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()