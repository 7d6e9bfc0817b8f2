"""
Page Range Resolution
=====================
Keeps the split tool's start/end inputs inside the document and in order.

Pages are 1-based here. ``PageRange.indices()`` converts to the 0-based
indices PyMuPDF expects.

Resolution on every edit:
    1. clamp(v) = max(1, min(v, total))
    2. if the edited bound crosses the other one, drag the other one along
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Literal, Optional

from .exceptions import InvalidPageRange

LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_page(value) -> Optional[int]:
    """
    Read the leading integer of user input, so ``"5.7"`` is 5 and ``"3abc"``
    is 3. Returns None when there is no number to read.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return None
    match = LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def coerce_page(value) -> int:
    """Parse user input into a page number. Blank input, garbage and 0 become 1."""
    return parse_page(value) or 1


def clamp(value, total: int) -> int:
    """Clamp a page number into ``[1, total]``."""
    return max(1, min(coerce_page(value), total))


@dataclass(frozen=True)
class PageRange:
    """An inclusive, 1-based page range within a document of ``total`` pages."""

    start: int
    end: int
    total: int

    @classmethod
    def full(cls, total: int) -> "PageRange":
        if total < 1:
            raise InvalidPageRange.for_total(total)
        return cls(start=1, end=total, total=total)

    @property
    def page_count(self) -> int:
        return self.end - self.start + 1

    def indices(self) -> list[int]:
        return list(range(self.start - 1, self.end))

    def check(self) -> "PageRange":
        check_range(self.start, self.end, self.total)
        return self


def resolve_start(current: PageRange, value) -> PageRange:
    """Apply a new start value; raises end when start would pass it."""
    start = clamp(value, current.total)
    end = current.end if start <= current.end else start
    return replace(current, start=start, end=end)


def resolve_end(current: PageRange, value) -> PageRange:
    """Apply a new end value; lowers start when end would drop below it."""
    end = clamp(value, current.total)
    start = current.start if end >= current.start else end
    return replace(current, start=start, end=end)


def resolve(
    total: int,
    start,
    end,
    changed: Literal["start", "end"] = "start",
) -> PageRange:
    """
    Resolve a raw (start, end) pair the way the form does.

    The bound named by ``changed`` is applied last and wins any conflict.
    """
    if total < 1:
        raise InvalidPageRange.for_total(total)
    base = PageRange(
        start=clamp(start, total),
        end=max(clamp(start, total), clamp(end, total)),
        total=total,
    )
    if changed == "end":
        return resolve_end(base, end)
    return resolve_start(replace(base, end=clamp(end, total)), start)


def check_range(start: int, end: int, total: int) -> None:
    """
    Final gate before a split.

    Raises:
        InvalidPageRange: exactly when start < 1, end > total, or start > end.
    """
    if start < 1 or end > total or start > end:
        raise InvalidPageRange.for_total(total)
