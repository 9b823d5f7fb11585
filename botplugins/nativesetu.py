"""Local picture library: one SQLite table per folder, images keyed by difference hash."""

from __future__ import annotations

import io
import os
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")


@dataclass(frozen=True)
class SetuEntry:
    """One stored picture."""

    img_id: int
    name: str
    path: str


def is_image_name(name: str) -> bool:
    """Whether the file name has a supported image extension."""
    return name.lower().endswith(IMAGE_SUFFIXES)


def difference_hash(image: Image.Image) -> int:
    """64-bit difference hash of an image, as a signed integer."""
    small = image.convert("RGB").resize((9, 8), Image.Resampling.BILINEAR)
    gray = [0.299 * r + 0.587 * g + 0.114 * b for r, g, b in small.getdata()]
    rows = (gray[start:start + 9] for start in range(0, 72, 9))
    value = 0
    for row in rows:
        for left, right in zip(row, row[1:]):
            value = (value << 1) | (left < right)
    return value - (1 << 64) if value >= 1 << 63 else value


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SetuLibrary:
    """Index of image folders under a root directory."""

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        return self._conn

    def _has_table(self, name: str) -> bool:
        row = self._db().execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        ).fetchone()
        return row is not None

    def _recreate(self, name: str) -> None:
        conn = self._db()
        with conn:
            conn.execute(f"DROP TABLE IF EXISTS {_quote(name)}")
            conn.execute(
                f"CREATE TABLE {_quote(name)} "
                "(imgid INTEGER PRIMARY KEY, name TEXT, path TEXT)"
            )

    def scan_all(self, root) -> None:
        """Rebuild the whole index from every folder below root."""
        root = Path(root)
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            self.db_path.unlink(missing_ok=True)
            self._walk(root, "")

    def _walk(self, root: Path, rel: str) -> None:
        entries = sorted(os.scandir(root / rel if rel else root), key=lambda e: e.name)
        for entry in entries:
            if not entry.is_dir():
                continue
            relpath = f"{rel}/{entry.name}" if rel else entry.name
            self._scan(root, relpath, entry.name)
            self._walk(root, relpath)

    def scan_class(self, root, name: str) -> None:
        """Rebuild the table of the folder root/name."""
        self._scan(Path(root), name, name)

    def _scan(self, root: Path, relpath: str, name: str) -> None:
        entries = sorted(os.scandir(root / relpath), key=lambda e: e.name)
        with self._lock:
            self._recreate(name)
        for entry in entries:
            if entry.is_dir() or not is_image_name(entry.name):
                continue
            path = f"{relpath}/{entry.name}"
            data = (root / path).read_bytes()
            with Image.open(io.BytesIO(data)) as img:
                img_id = difference_hash(img)
            with self._lock:
                conn = self._db()
                with conn:
                    conn.execute(
                        f"INSERT OR REPLACE INTO {_quote(name)} (imgid, name, path) "
                        "VALUES (?, ?, ?)",
                        (img_id, entry.name, path),
                    )

    def classes(self) -> list[str]:
        """Names of all indexed folders, sorted."""
        with self._lock:
            if self._conn is None and not self.db_path.exists():
                return []
            rows = self._db().execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            ).fetchall()
        return [row[0] for row in rows]

    def count(self, name: str) -> int:
        with self._lock:
            if not self._has_table(name):
                raise LookupError(f"no such class: {name}")
            return self._db().execute(f"SELECT COUNT(*) FROM {_quote(name)}").fetchone()[0]

    def pick(self, name: str) -> SetuEntry:
        """A random picture of the folder."""
        with self._lock:
            if not self._has_table(name):
                raise LookupError(f"no such class: {name}")
            row = self._db().execute(
                f"SELECT imgid, name, path FROM {_quote(name)} ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            raise LookupError(f"class {name} is empty")
        return SetuEntry(*row)

    def summary(self) -> str:
        """Listing of all folders with their picture counts."""
        lines = ["所有本地setu分类"]
        for i, name in enumerate(self.classes()):
            try:
                lines.append(f"{i:02d}. {name}({self.count(name)})")
            except (sqlite3.Error, LookupError):
                lines.append(f"{i:02d}. {name}(error)")
        return "\n".join(lines)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None