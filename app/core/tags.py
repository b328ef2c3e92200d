import re
import unicodedata
from typing import Iterable, Sequence

ALLOWED_SEASONS = ("spring", "summer", "autumn", "winter")
MAX_TAGS = 10


def normalize_tag(s: str) -> str:
    s = unicodedata.normalize("NFKD", s or "").encode("ascii", "ignore").decode()
    s = s.strip().lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = re.sub(r"-{2,}", "-", s).strip("-")
    if not (1 <= len(s) <= 24):
        raise ValueError("invalid_length")
    return s


def normalize_many(xs: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for x in xs or []:
        t = normalize_tag(x)
        if t and t not in seen:
            seen.add(t)
            out.append(t)
    return out


def clamp_seasons(seasons: Sequence[str]) -> list[str]:
    se: list[str] = []
    for s in seasons:
        s = (s or "").strip().lower()
        if s in ALLOWED_SEASONS and s not in se:
            se.append(s)
    return se
