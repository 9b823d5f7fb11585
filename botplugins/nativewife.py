"""Per-group folders of "wife" pictures and the daily pick."""

from __future__ import annotations

import hashlib
import random
from datetime import date
from pathlib import Path

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def group_folder_name(gid: int) -> str:
    """Base-36 spelling of a group id."""
    if gid == 0:
        return "0"
    sign = "-" if gid < 0 else ""
    n = abs(gid)
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return sign + "".join(reversed(digits))


def clean_name(text: str, keyword: str) -> str:
    """Name following the last keyword, without spaces or path separators."""
    name = text.replace(" ", "")
    idx = name.rfind(keyword)
    if idx >= 0:
        name = name[idx + len(keyword):]
    return name.replace("/", "").replace("\\", "")


class WifeGallery:
    """Pictures stored as base/<group>/<name>."""

    def __init__(self, base):
        self.base = Path(base)

    def _folder(self, group_id: int) -> Path:
        return self.base / group_folder_name(group_id)

    def names(self, group_id: int) -> list[str]:
        """Sorted names of the group's pictures; empty if there are none."""
        folder = self._folder(group_id)
        if not folder.is_dir():
            return []
        return sorted(p.name for p in folder.iterdir())

    def pick(self, group_id: int, nickname: str, today: date) -> str:
        """The picture assigned to nickname for the day."""
        names = self.names(group_id)
        if not names:
            raise LookupError("一个wife也没有哦~")
        if len(names) == 1:
            return names[0]
        key = f"{nickname}{today.year}{today.month}{today.day}".encode("utf-8")
        seed = int.from_bytes(hashlib.md5(key).digest()[:8], "little", signed=True)
        return names[random.Random(seed).randrange(len(names))]

    def add(self, group_id: int, name: str, data: bytes) -> Path:
        """Store picture data under name; returns the file path."""
        if not name:
            raise ValueError("没有找到wife的名字！")
        folder = self._folder(group_id)
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        path.write_bytes(data)
        return path

    def remove(self, group_id: int, name: str) -> None:
        """Delete a picture; FileNotFoundError if it is absent."""
        if not name:
            raise ValueError("没有找到wife的名字！")
        (self._folder(group_id) / name).unlink()