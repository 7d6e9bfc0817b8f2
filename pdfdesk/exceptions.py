"""
Exceptions
==========
Error taxonomy for PDF Desk.

All errors inherit from PdfDeskError and carry a ``user_message`` that is
safe to show in the browser or on the console. Diagnostic detail from the
underlying library is logged and chained, never shown.

    Validation        FileValidationError, InvalidPageRange
    Library failure   DocumentLoadFailed, MergeFailed, SplitFailed,
                      CompressFailed, ConvertFailed, PreviewRenderFailed
    Delivery          ArtifactNotFound
"""

from __future__ import annotations


class PdfDeskError(Exception):
    """
    Base exception for all PDF Desk errors.

    Catch this to handle any toolkit-specific error.
    """

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None):
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


# ─── Validation ──────────────────────────────────────────────────────────────


class ValidationFailure(PdfDeskError):
    """Raised before any library call when user input is unusable."""


class FileValidationError(ValidationFailure):
    """
    Raised when a file selection breaks intake rules.

    Example:
        >>> validate_files([a, b], PDF_SINGLE)
        FileValidationError: Please select only one file
    """

    default_message = "Please select a file"


class InvalidPageRange(ValidationFailure):
    """
    Raised when a page range or page number falls outside the document.

    Split re-raises this verbatim instead of wrapping it in SplitFailed.
    """

    default_message = "Invalid page range."

    @classmethod
    def for_total(cls, total_pages: int) -> "InvalidPageRange":
        return cls(f"Invalid page range. PDF has {total_pages} page(s).")


# ─── Library failures ────────────────────────────────────────────────────────


class OperationFailed(PdfDeskError):
    """Raised when PyMuPDF rejects a document or an operation fails."""


class DocumentLoadFailed(OperationFailed):
    default_message = "Failed to load PDF. Please ensure it is a valid PDF file."


class MergeFailed(OperationFailed):
    default_message = (
        "Failed to merge PDFs. Please ensure all files are valid PDF documents."
    )


class SplitFailed(OperationFailed):
    default_message = (
        "Failed to split PDF. Please ensure the file is a valid PDF document."
    )


class CompressFailed(OperationFailed):
    default_message = (
        "Failed to compress PDF. Please ensure the file is a valid PDF document."
    )


class ConvertFailed(OperationFailed):
    default_message = "Failed to convert selected pages. Please try again."


class PreviewRenderFailed(OperationFailed):
    default_message = "Failed to render PDF page."


# ─── Delivery ────────────────────────────────────────────────────────────────


class ArtifactNotFound(PdfDeskError):
    """Raised when a download token is unknown, revoked, or expired."""

    default_message = "Download is no longer available."
