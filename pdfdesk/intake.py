"""
File Intake
===========
Validates a file selection against the rules of a drop zone before any
document work starts.

Rules:
    - Single-file tools reject multi-selection
    - Multi-file tools may cap the number of files
    - Each file must match one ``accept`` entry:
        ``.pdf``         extension, case-insensitive
        ``image/*``      any image MIME type
        ``application/pdf``, ``image/png`` ...   MIME pattern (``*`` wildcard)

When the declared MIME type is missing or generic it is guessed from the
file name. A file whose type still cannot be determined is let through
and left for the library to accept or reject.
"""

from __future__ import annotations

import fnmatch
import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional, Sequence

from .exceptions import FileValidationError
from .models import SelectedFile

logger = logging.getLogger(__name__)

UNRECOGNIZED_TYPES = {"", "application/octet-stream"}


@dataclass(frozen=True)
class IntakeRules:
    """What a drop zone accepts."""

    accept: str = ""
    multiple: bool = False
    max_files: Optional[int] = None

    @property
    def accepted_types(self) -> list[str]:
        return [t.strip() for t in self.accept.split(",") if t.strip()]

    def with_max_files(self, max_files: Optional[int]) -> "IntakeRules":
        return IntakeRules(self.accept, self.multiple, max_files)

    @property
    def hints(self) -> list[str]:
        """Lines shown under a drop zone describing what it takes."""
        hints = []
        if self.accept:
            label = "Formats" if len(self.accepted_types) > 1 else "Format"
            hints.append(f"{label}: {self.accept}")
        if self.multiple:
            hints.append(
                f"Up to {self.max_files} files" if self.max_files else "Multiple files allowed"
            )
        return hints


PDF_SINGLE = IntakeRules(accept=".pdf,application/pdf")
IMAGES_MULTI = IntakeRules(accept="image/*", multiple=True)


def effective_type(file: SelectedFile) -> str:
    """Declared MIME type, or a guess from the file name when unrecognized."""
    declared = (file.content_type or "").split(";")[0].strip().lower()
    if declared not in UNRECOGNIZED_TYPES:
        return declared
    guessed, _ = mimetypes.guess_type(file.name)
    return guessed or ""


def matches(file: SelectedFile, accepted_types: Sequence[str]) -> bool:
    """Check one file against a list of accept entries."""
    if not accepted_types:
        return True

    content_type = effective_type(file)
    name = file.name.lower()

    for accepted in accepted_types:
        if accepted.startswith("."):
            if name.endswith(accepted.lower()):
                return True
            continue
        if not content_type:
            # Unknown type: nothing to compare against
            return True
        if accepted == "image/*":
            if content_type.startswith("image/"):
                return True
            continue
        if fnmatch.fnmatch(content_type, accepted.lower()):
            return True
    return False


def validate_files(files: Sequence[SelectedFile], rules: IntakeRules) -> None:
    """
    Enforce intake rules on a selection.

    Raises:
        FileValidationError: With the message to show next to the drop zone.
    """
    if not files:
        raise FileValidationError("Please select a file")

    if not rules.multiple and len(files) > 1:
        raise FileValidationError("Please select only one file")

    if rules.max_files and len(files) > rules.max_files:
        raise FileValidationError(
            f"Maximum {rules.max_files} file(s) allowed"
        )

    accepted = rules.accepted_types
    rejected = [f.name for f in files if not matches(f, accepted)]
    if rejected:
        logger.info(f"Rejected files for accept={rules.accept!r}: {rejected}")
        raise FileValidationError(
            f"Please select files with the following types: {rules.accept}"
        )


def intake(files: Sequence[SelectedFile], rules: IntakeRules) -> list[SelectedFile]:
    """Validate and return the selection as a list."""
    validate_files(files, rules)
    return list(files)
