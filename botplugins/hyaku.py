"""Ogura Hyakunin Isshu: the hundred poems loaded from CSV."""

from __future__ import annotations

import csv
from dataclasses import dataclass, fields
from pathlib import Path

IMAGE_BASE = "https://gitcode.net/u011570312/OguraHyakuninIsshu/-/raw/master/"
POEM_COUNT = 100

_MARKS = ("●", "◉", "○", "○", "◎", "◎")
_LABELS = ("番号", "歌人", "上の句", "下の句", "上の句ひらがな", "下の句ひらがな")


@dataclass(frozen=True)
class Poem:
    """One poem of the collection."""

    number: str
    poet: str
    upper: str
    lower: str
    upper_kana: str
    lower_kana: str

    def __str__(self) -> str:
        values = (getattr(self, f.name) for f in fields(self))
        return "".join(
            f"{mark}{label}：{value}\n"
            for mark, label, value in zip(_MARKS, _LABELS, values)
        )


def load_poems(path) -> list[Poem]:
    """Read the CSV (with a title row) holding exactly 100 numbered poems."""
    with Path(path).open(encoding="utf-8", newline="") as f:
        records = list(csv.reader(f))[1:]
    if len(records) != POEM_COUNT:
        raise ValueError("invalid csvfile")
    poems = []
    for index, record in enumerate(records, start=1):
        if len(record) != 6:
            raise ValueError("invalid csvfile")
        if int(record[0]) != index:
            raise ValueError("invalid csvfile")
        poems.append(Poem(*record))
    return poems


def poem_by_number(poems: list[Poem], n: int) -> Poem:
    """Poem number n, counted from 1."""
    if n < 1 or n > POEM_COUNT:
        raise ValueError("超出范围")
    return poems[n - 1]


def image_urls(n: int) -> tuple[str, str]:
    """Picture and card image URLs of poem n."""
    return f"{IMAGE_BASE}img/{n:03d}.jpg", f"{IMAGE_BASE}img/{n:03d}.png"