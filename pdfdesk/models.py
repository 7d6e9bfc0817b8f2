"""
Data Models
===========
Pydantic models for the transient objects that flow through one operation:
the files a user selected, and the artifacts produced for download.
Nothing here is persisted; every instance lives for a single request.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path

from pydantic import BaseModel, Field, computed_field


def format_kb(size: int) -> str:
    """Human size in KB with two decimals, e.g. ``"195.31 KB"``."""
    return f"{size / 1024:.2f} KB"


def count_label(count: int, noun: str) -> str:
    """``count_label(1, "page") -> "1 page"``, ``(3, "page") -> "3 pages"``."""
    return f"{count} {noun}{'' if count == 1 else 's'}"


# ─── Input Models ─────────────────────────────────────────────────────────────


class SelectedFile(BaseModel):
    """
    A file picked by the user, held in memory for one operation.
    The declared content type may be empty when the browser or OS
    does not recognize the file.
    """
    name: str
    content_type: str = ""
    data: bytes = Field(repr=False)

    @computed_field
    @property
    def size(self) -> int:
        return len(self.data)

    @computed_field
    @property
    def label(self) -> str:
        return f"{self.name} ({format_kb(self.size)})"

    @classmethod
    def from_path(cls, path: str | Path) -> "SelectedFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "",
            data=path.read_bytes(),
        )

    @classmethod
    def from_upload(cls, upload) -> "SelectedFile":
        """Build from a Werkzeug ``FileStorage`` upload."""
        return cls(
            name=upload.filename or "",
            content_type=upload.mimetype or "",
            data=upload.read(),
        )


# ─── Output Models ────────────────────────────────────────────────────────────


class Artifact(BaseModel):
    """Serialized bytes produced by an operation, offered as a download."""
    filename: str
    media_type: str = "application/pdf"
    data: bytes = Field(repr=False)

    @computed_field
    @property
    def size(self) -> int:
        return len(self.data)

    def describe(self) -> dict:
        return self.model_dump(exclude={"data"})


class CompressionResult(BaseModel):
    """Outcome of a compress run with before/after sizes."""
    artifact: Artifact
    original_size: int = Field(ge=0)

    @computed_field
    @property
    def new_size(self) -> int:
        return self.artifact.size

    @computed_field
    @property
    def reduction_percent(self) -> str:
        if self.original_size == 0:
            return "0.0"
        reduction = (self.original_size - self.new_size) / self.original_size * 100
        return f"{reduction:.1f}"

    @property
    def message(self) -> str:
        return (
            f"Original size: {format_kb(self.original_size)}. "
            f"New size: {format_kb(self.new_size)}. "
            f"Reduction: {self.reduction_percent}%."
        )


class PageImage(BaseModel):
    """A single rasterized page."""
    page_number: int = Field(ge=1)
    artifact: Artifact


class ConversionReport(BaseModel):
    """
    Result of rasterizing a page selection.
    Failures are tallied per page; a partial run is still a success.
    """
    images: list[PageImage] = Field(default_factory=list)
    failed_pages: list[int] = Field(default_factory=list)

    @computed_field
    @property
    def succeeded(self) -> int:
        return len(self.images)

    @computed_field
    @property
    def failed(self) -> int:
        return len(self.failed_pages)

    @property
    def message(self) -> str:
        message = f"Successfully converted {count_label(self.succeeded, 'page')}"
        if self.failed:
            message += f". {count_label(self.failed, 'page')} failed."
        return message
