"""Verdicts for image classification scores."""

from __future__ import annotations

from dataclasses import dataclass

THRESHOLD = 0.3
HSO_IMAGE = "https://gchat.qpic.cn/gchatpic_new//--4234EDEC5F147A4C319A41149D7E0EA9/0"


@dataclass(frozen=True)
class Classification:
    """Class probabilities of one picture."""

    drawings: float = 0.0
    hentai: float = 0.0
    neutral: float = 0.0
    porn: float = 0.0
    sexy: float = 0.0


def _tags(p: Classification) -> list[str]:
    labels = (("hentai", p.hentai), ("porn", p.porn), ("hso", p.sexy))
    return [name for name, score in labels if score > THRESHOLD]


def judge(p: Classification) -> str:
    """Verdict text for an explicitly requested rating."""
    if p.neutral > THRESHOLD:
        return "普通哦"
    kind = "二次元" if p.drawings > THRESHOLD or p.neutral < THRESHOLD else "三次元"
    return "".join([kind, *(f" {t}" for t in _tags(p))])


def auto_judge(p: Classification) -> str | None:
    """Verdict for automatic review, or None when nothing should be said."""
    if p.neutral > THRESHOLD:
        return None
    tags = _tags(p)
    if not tags:
        return None
    kind = "二次元" if p.drawings > THRESHOLD else "三次元"
    return "".join([kind, *(f" {t}" for t in tags)])