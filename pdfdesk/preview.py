"""
PDF Preview
===========
One-page-at-a-time preview over a loaded document handle.

Navigation is bounded to ``[1, total_pages]``. Every call to ``render``
rasterizes the current page again; nothing is cached, so going back to a
page renders it anew.
"""

from __future__ import annotations

import logging
import secrets
import threading
from typing import Callable, Optional

import fitz  # PyMuPDF

from .exceptions import DocumentLoadFailed, PreviewRenderFailed

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_SCALE = 1.5
DEFAULT_MAX_SESSIONS = 64


class PreviewSession:
    """
    Paginated preview of a single PDF.

    Args:
        data: PDF bytes.
        scale: Zoom factor applied when rendering.
        on_page_change: Called with the new page number after each move.

    Raises:
        DocumentLoadFailed: If the bytes are not a readable PDF.
    """

    def __init__(
        self,
        data: bytes,
        scale: float = DEFAULT_PREVIEW_SCALE,
        on_page_change: Optional[Callable[[int], None]] = None,
    ):
        try:
            self._doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.error(f"Error loading PDF: {e}")
            raise DocumentLoadFailed() from e

        self.scale = scale
        self.on_page_change = on_page_change
        self.total_pages = self._doc.page_count
        self.current_page = 1

    def __enter__(self) -> "PreviewSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._doc is None

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def page_info(self) -> str:
        return f"Page {self.current_page} of {self.total_pages}"

    def state(self) -> dict:
        return {
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "page_info": self.page_info,
            "has_previous": self.has_previous,
            "has_next": self.has_next,
        }

    # ─── Navigation ──────────────────────────────────────────────────────

    def go_to(self, page: int) -> bool:
        """Jump to ``page``; ignored (returns False) when out of bounds."""
        if not 1 <= page <= self.total_pages:
            return False
        self.current_page = page
        if self.on_page_change:
            self.on_page_change(page)
        return True

    def next(self) -> bool:
        if not self.has_next:
            return False
        return self.go_to(self.current_page + 1)

    def previous(self) -> bool:
        if not self.has_previous:
            return False
        return self.go_to(self.current_page - 1)

    # ─── Rendering ───────────────────────────────────────────────────────

    def render(self) -> bytes:
        """
        Render the current page to PNG bytes.

        Raises:
            PreviewRenderFailed: The session is closed or the page cannot render.
        """
        if self._doc is None:
            raise PreviewRenderFailed()
        try:
            page = self._doc.load_page(self.current_page - 1)
            pix = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale))
            return pix.tobytes("png")
        except Exception as e:
            logger.error(f"Error rendering page {self.current_page}: {e}")
            raise PreviewRenderFailed() from e

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None


class PreviewStore:
    """
    Preview sessions keyed by an opaque token, one per loaded document.

    Each client gets its own token when it opens a preview, so two
    browsers previewing the same tool never see each other's pages.
    Passing the previous token to ``open`` closes that session first.
    When more than ``max_sessions`` are open the oldest one is closed.
    """

    def __init__(
        self,
        scale: float = DEFAULT_PREVIEW_SCALE,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ):
        self.scale = scale
        self.max_sessions = max_sessions
        self._sessions: dict[tuple[str, str], PreviewSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def open(
        self,
        slot: str,
        data: bytes,
        replace: Optional[str] = None,
    ) -> tuple[str, PreviewSession]:
        """
        Load ``data`` for the tool ``slot`` and return ``(token, session)``.

        Raises:
            DocumentLoadFailed: If the bytes are not a readable PDF.
        """
        session = PreviewSession(data, scale=self.scale)
        token = secrets.token_urlsafe(16)
        stale = []
        with self._lock:
            if replace is not None:
                previous = self._sessions.pop((slot, replace), None)
                if previous is not None:
                    stale.append(previous)
            self._sessions[(slot, token)] = session
            while len(self._sessions) > self.max_sessions:
                oldest = next(iter(self._sessions))
                stale.append(self._sessions.pop(oldest))
        for previous in stale:
            previous.close()
        logger.info(f"Preview '{slot}' loaded: {session.total_pages} page(s)")
        return token, session

    def get(self, slot: str, token: str) -> Optional[PreviewSession]:
        with self._lock:
            return self._sessions.get((slot, token))

    def close(self, slot: str, token: str) -> bool:
        with self._lock:
            session = self._sessions.pop((slot, token), None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
