"""
Page Selection
==============
The set of pages chosen for rasterization, driven by per-page checkboxes
and the select-all / deselect-all buttons.
"""

from __future__ import annotations

from typing import Iterable

from .exceptions import InvalidPageRange
from .models import count_label


class PageSelection:
    """Distinct 1-based page numbers within a document of ``page_count`` pages."""

    def __init__(self, page_count: int, pages: Iterable[int] = ()):
        if page_count < 0:
            raise ValueError(f"page_count must be >= 0, got {page_count}")
        self.page_count = page_count
        self._pages: set[int] = set()
        for page in pages:
            self.toggle(page, True)

    def __contains__(self, page: int) -> bool:
        return page in self._pages

    def __len__(self) -> int:
        return len(self._pages)

    def __repr__(self) -> str:
        return f"PageSelection(page_count={self.page_count}, pages={self.pages()})"

    def toggle(self, page: int, checked: bool) -> None:
        if not 1 <= page <= self.page_count:
            raise InvalidPageRange.for_total(self.page_count)
        if checked:
            self._pages.add(page)
        else:
            self._pages.discard(page)

    def select_all(self) -> None:
        self._pages = set(range(1, self.page_count + 1))

    def deselect_all(self) -> None:
        self._pages.clear()

    def pages(self) -> list[int]:
        """Selected pages in ascending order, the order they are converted in."""
        return sorted(self._pages)

    @property
    def can_convert(self) -> bool:
        return bool(self._pages)

    @property
    def label(self) -> str:
        if not self._pages:
            return "No pages selected"
        return f"{count_label(len(self._pages), 'page')} selected"

    @property
    def action_label(self) -> str:
        count = len(self._pages)
        images = "Image" if count == 1 else "Images"
        return f"Convert {count_label(count, 'Page')} to {images}"


def parse_page_list(text: str, page_count: int) -> PageSelection:
    """
    Build a selection from text like ``"1,3-5"``.

    Raises:
        InvalidPageRange: If a number or range falls outside the document.
    """
    selection = PageSelection(page_count)
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            first, _, last = part.partition("-")
            try:
                start, end = int(first), int(last)
            except ValueError:
                raise InvalidPageRange.for_total(page_count) from None
            if start > end:
                raise InvalidPageRange.for_total(page_count)
            for page in range(start, end + 1):
                selection.toggle(page, True)
        else:
            try:
                selection.toggle(int(part), True)
            except ValueError:
                raise InvalidPageRange.for_total(page_count) from None
    return selection
