"""
Result Delivery
===============
Artifact naming and the registry of pending downloads.

A finished operation publishes its artifact and gets back a token, the
transient reference the browser uses to fetch it. Publishing into a slot
that already holds downloads revokes them, so a tool never shows stale
download buttons next to fresh ones. A claimed artifact stays available
for a short grace period and is then released.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import ArtifactNotFound
from .models import Artifact

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 0.2


# ─── Naming ───────────────────────────────────────────────────────────────────


def timestamp_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


def merged_name(ts: Optional[int] = None) -> str:
    return f"merged-{ts or timestamp_ms()}.pdf"


def split_name(start: int, end: int, ts: Optional[int] = None) -> str:
    return f"split-pages-{start}-{end}-{ts or timestamp_ms()}.pdf"


def compressed_name(ts: Optional[int] = None) -> str:
    return f"compressed-{ts or timestamp_ms()}.pdf"


def page_image_name(page_number: int, ts: Optional[int] = None) -> str:
    return f"page-{page_number}-{ts or timestamp_ms()}.png"


def images_to_pdf_name(ts: Optional[int] = None) -> str:
    return f"images-to-pdf-{ts or timestamp_ms()}.pdf"


# ─── Registry ─────────────────────────────────────────────────────────────────


@dataclass
class _Entry:
    artifact: Artifact
    slot: Optional[str]
    expires_at: Optional[float] = None


class DownloadRegistry:
    """
    In-memory store of downloadable artifacts keyed by opaque tokens.

    A slot groups the downloads one tool currently shows. Thread-safe;
    expired entries are purged lazily on every access.
    """

    def __init__(
        self,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._slots: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._entries)

    def __contains__(self, token: str) -> bool:
        with self._lock:
            self._purge()
            return token in self._entries

    def publish(
        self,
        artifact: Artifact,
        slot: Optional[str] = None,
        replace: bool = True,
    ) -> str:
        """
        Register an artifact and return its token.

        With ``replace`` (the default) any downloads already in ``slot``
        are revoked first; pass ``replace=False`` to add to the slot.
        """
        token = secrets.token_urlsafe(16)
        with self._lock:
            self._purge()
            if slot is not None:
                if replace:
                    self._clear(slot)
                self._slots.setdefault(slot, []).append(token)
            self._entries[token] = _Entry(artifact=artifact, slot=slot)
        logger.debug(f"Published {artifact.filename} as {token} (slot={slot})")
        return token

    def claim(self, token: str) -> Artifact:
        """
        Fetch an artifact for download and schedule its release.

        Raises:
            ArtifactNotFound: Unknown, revoked, or already released token.
        """
        with self._lock:
            self._purge()
            entry = self._entries.get(token)
            if entry is None:
                raise ArtifactNotFound()
            if entry.expires_at is None:
                entry.expires_at = self._clock() + self.grace_seconds
            return entry.artifact

    def clear(self, slot: str) -> int:
        """Revoke every download in a slot; returns how many were dropped."""
        with self._lock:
            return self._clear(slot)

    def _clear(self, slot: str) -> int:
        return sum(1 for token in list(self._slots.get(slot, [])) if self._drop(token))

    def _drop(self, token: str) -> bool:
        entry = self._entries.pop(token, None)
        if entry is None:
            return False
        if entry.slot is not None:
            tokens = self._slots.get(entry.slot, [])
            if token in tokens:
                tokens.remove(token)
            if not tokens:
                self._slots.pop(entry.slot, None)
        logger.debug(f"Released {entry.artifact.filename} ({token})")
        return True

    def _purge(self) -> None:
        now = self._clock()
        expired = [
            token for token, entry in self._entries.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for token in expired:
            self._drop(token)
