"""
PDF Toolkit Engine
==================
Thin wrappers around PyMuPDF for every tool the desk offers.

Usage:
    toolkit = PdfToolkit(ToolkitConfig())
    artifact = toolkit.merge([first, second])
    # artifact.data holds the merged PDF bytes

Each operation runs strictly in sequence (one file, one page at a time):
    load bytes → copy / re-encode / render → serialize bytes → Artifact

Library failures are logged with their detail and re-raised as the
matching PdfDeskError with a message fit for the user.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

import fitz  # PyMuPDF

from . import delivery
from .exceptions import (
    CompressFailed,
    ConvertFailed,
    DocumentLoadFailed,
    FileValidationError,
    InvalidPageRange,
    MergeFailed,
    OperationFailed,
    SplitFailed,
)
from .intake import IMAGES_MULTI, effective_type, validate_files
from .models import (
    Artifact,
    CompressionResult,
    ConversionReport,
    PageImage,
    SelectedFile,
)
from .page_range import PageRange

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Declared MIME type -> image formats accepted for it, in order of preference
IMAGE_FILETYPES = {
    "image/png": ("png",),
    "image/jpeg": ("jpeg",),
    "image/jpg": ("jpeg",),
}
FALLBACK_IMAGE_FILETYPES = ("png", "jpeg")

# Extension reported by fitz.image_profile -> filetype above
IMAGE_EXTENSIONS = {"png": "png", "jpeg": "jpeg", "jpg": "jpeg"}


@dataclass
class ToolkitConfig:
    """Configuration for the toolkit engine."""

    # Rendering
    preview_scale: float = 1.5
    raster_scale: float = 2.0

    # Intake
    max_images: Optional[int] = None

    # Delivery
    download_grace_seconds: float = delivery.DEFAULT_GRACE_SECONDS

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.preview_scale <= 0 or self.raster_scale <= 0:
            raise ValueError(
                f"Render scales must be positive, got preview={self.preview_scale} "
                f"raster={self.raster_scale}"
            )
        if self.max_images is not None and self.max_images < 1:
            raise ValueError(f"max_images must be >= 1, got {self.max_images}")
        if self.download_grace_seconds < 0:
            raise ValueError("download_grace_seconds must be >= 0")


def merge_ready(first: Optional[SelectedFile], second: Optional[SelectedFile]) -> bool:
    """The merge action is enabled only once both inputs are present."""
    return first is not None and second is not None


@contextmanager
def open_pdf(data: bytes, error_cls: type[OperationFailed] = DocumentLoadFailed) -> Iterator[fitz.Document]:
    """Open PDF bytes as a document handle, mapping load errors to ``error_cls``."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        logger.error(f"Error loading PDF: {e}")
        raise error_cls() from e
    try:
        yield doc
    finally:
        doc.close()


class PdfToolkit:
    """
    Entry point for all document operations.

    Stateless apart from its config; safe to share between requests.
    """

    def __init__(self, config: Optional[ToolkitConfig] = None):
        self.config = config or ToolkitConfig()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("pdfdesk")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            package_logger.addHandler(console)
        for handler in package_logger.handlers:
            handler.setLevel(log_level)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).absolute()
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path
                for h in package_logger.handlers
            )
            if not already:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(
                    logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
                )
                package_logger.addHandler(file_handler)

    # ─── Inspection ──────────────────────────────────────────────────────

    def page_count(
        self,
        data: bytes,
        error_cls: type[OperationFailed] = DocumentLoadFailed,
    ) -> int:
        """
        Number of pages in a PDF.

        Raises:
            DocumentLoadFailed: If the bytes are not a readable PDF. Callers
                pass ``error_cls`` to report the failure as their own.
        """
        with open_pdf(data, error_cls) as doc:
            return doc.page_count

    def metadata(self, data: bytes) -> dict:
        """Page count plus the non-empty document info fields."""
        with open_pdf(data) as doc:
            info = {
                key: value
                for key, value in (doc.metadata or {}).items()
                if value and key in ("title", "author", "subject", "creator", "producer")
            }
            info["pages"] = doc.page_count
            return info

    # ─── Merge ───────────────────────────────────────────────────────────

    def merge(
        self,
        files: Sequence[SelectedFile],
        progress_callback: Optional[callable] = None,
    ) -> Artifact:
        """
        Concatenate all pages of every file, in order.

        Raises:
            FileValidationError: Fewer than two files.
            MergeFailed: Any file cannot be loaded or the result cannot be saved.
        """
        if len(files) < 2 or any(f is None for f in files):
            raise FileValidationError("Please select both PDF files to merge")

        start_time = time.time()
        logger.info(f"Merging {len(files)} PDFs")

        try:
            with fitz.open() as merged:
                for idx, file in enumerate(files, start=1):
                    with fitz.open(stream=file.data, filetype="pdf") as source:
                        merged.insert_pdf(source)
                    logger.debug(f"Appended {file.name} ({merged.page_count} pages so far)")
                    if progress_callback:
                        progress_callback(idx, len(files))
                data = merged.tobytes()
                total = merged.page_count
        except Exception as e:
            logger.error(f"Error merging PDFs: {e}")
            raise MergeFailed() from e

        logger.info(f"Merge complete in {time.time() - start_time:.2f}s: {total} pages")
        return Artifact(filename=delivery.merged_name(), data=data)

    # ─── Split ───────────────────────────────────────────────────────────

    def split(self, file: SelectedFile, start: int, end: int) -> Artifact:
        """
        Extract pages ``start`` to ``end`` (1-based, inclusive).

        Raises:
            InvalidPageRange: The range falls outside the document; passed
                through unchanged.
            SplitFailed: The file cannot be loaded or the result cannot be saved.
        """
        logger.info(f"Splitting {file.name}: pages {start}-{end}")
        try:
            with fitz.open(stream=file.data, filetype="pdf") as source:
                page_range = PageRange(start=start, end=end, total=source.page_count).check()
                with fitz.open() as result:
                    result.insert_pdf(
                        source,
                        from_page=page_range.indices()[0],
                        to_page=page_range.indices()[-1],
                    )
                    data = result.tobytes()
        except InvalidPageRange:
            logger.warning(f"Rejected page range {start}-{end} for {file.name}")
            raise
        except Exception as e:
            logger.error(f"Error splitting PDF: {e}")
            raise SplitFailed() from e

        return Artifact(filename=delivery.split_name(start, end), data=data)

    # ─── Compress ────────────────────────────────────────────────────────

    def compress(self, file: SelectedFile) -> CompressionResult:
        """
        Re-serialize a PDF with unused objects removed and streams deflated.

        The output can be larger than the input; the reduction is then negative.

        Raises:
            CompressFailed: The file cannot be loaded or saved.
        """
        logger.info(f"Compressing {file.name} ({file.size} bytes)")
        try:
            with fitz.open(stream=file.data, filetype="pdf") as doc:
                data = doc.tobytes(garbage=4, deflate=True, clean=True)
        except Exception as e:
            logger.error(f"Error compressing PDF: {e}")
            raise CompressFailed() from e

        result = CompressionResult(
            artifact=Artifact(filename=delivery.compressed_name(), data=data),
            original_size=file.size,
        )
        logger.info(f"Compression done: {result.original_size} -> {result.new_size} bytes "
                    f"({result.reduction_percent}%)")
        return result

    # ─── Rasterize ───────────────────────────────────────────────────────

    def render_page(self, doc: fitz.Document, page_number: int, scale: float) -> bytes:
        """
        Render one 1-based page of an open document to PNG bytes.

        Raises:
            ConvertFailed: Page out of range or rendering error.
        """
        try:
            if not 1 <= page_number <= doc.page_count:
                raise InvalidPageRange.for_total(doc.page_count)
            page = doc.load_page(page_number - 1)
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return pix.tobytes("png")
        except Exception as e:
            raise ConvertFailed(f"Failed to convert page {page_number} to image") from e

    def pdf_to_images(
        self,
        file: SelectedFile,
        pages: Sequence[int],
        progress_callback: Optional[callable] = None,
    ) -> ConversionReport:
        """
        Rasterize the given pages to PNG, one page at a time.

        A failing page is counted and skipped; the run never stops early.

        Raises:
            FileValidationError: No pages requested.
            ConvertFailed: The document cannot be loaded, or no page converted.
        """
        if not pages:
            raise FileValidationError("Please select at least one page to convert")

        ordered = sorted(set(pages))
        report = ConversionReport()
        logger.info(f"Converting {len(ordered)} page(s) of {file.name} to PNG")

        with open_pdf(file.data, ConvertFailed) as doc:
            for idx, page_number in enumerate(ordered, start=1):
                try:
                    png = self.render_page(doc, page_number, self.config.raster_scale)
                except ConvertFailed as e:
                    logger.error(f"Error converting page {page_number}: {e.__cause__}")
                    report.failed_pages.append(page_number)
                else:
                    report.images.append(PageImage(
                        page_number=page_number,
                        artifact=Artifact(
                            filename=delivery.page_image_name(page_number),
                            media_type="image/png",
                            data=png,
                        ),
                    ))
                if progress_callback:
                    progress_callback(idx, len(ordered))

        if report.succeeded == 0:
            raise ConvertFailed()

        logger.info(f"Converted {report.succeeded} page(s), {report.failed} failed")
        return report

    # ─── Images to PDF ───────────────────────────────────────────────────

    def images_to_pdf(
        self,
        images: Sequence[SelectedFile],
        progress_callback: Optional[callable] = None,
    ) -> Artifact:
        """
        Build a PDF with one page per image, each page sized to its image.

        Raises:
            FileValidationError: No images, more than ``max_images``, or a
                file that is not an image.
            ConvertFailed: Any image cannot be decoded or the PDF cannot be saved.
        """
        if not images:
            raise FileValidationError("Please select at least one image file")
        validate_files(images, IMAGES_MULTI.with_max_files(self.config.max_images))

        logger.info(f"Building PDF from {len(images)} image(s)")
        try:
            with fitz.open() as doc:
                for idx, image in enumerate(images, start=1):
                    width, height = self._image_size(image)
                    page = doc.new_page(width=width, height=height)
                    page.insert_image(fitz.Rect(0, 0, width, height), stream=image.data)
                    if progress_callback:
                        progress_callback(idx, len(images))
                data = doc.tobytes()
        except Exception as e:
            logger.error(f"Error converting image to PDF: {e}")
            raise ConvertFailed(
                "Failed to convert image to PDF. Please ensure the file is a valid image."
            ) from e

        return Artifact(filename=delivery.images_to_pdf_name(), data=data)

    def _image_size(self, image: SelectedFile) -> tuple[int, int]:
        """
        Check that an image is PNG or JPEG and return its natural pixel size.

        The declared type names the one format accepted; an unrecognized
        type accepts PNG first, then JPEG. Anything else PyMuPDF can decode
        (GIF, BMP, PNM ...) is refused.
        """
        filetypes = IMAGE_FILETYPES.get(effective_type(image), FALLBACK_IMAGE_FILETYPES)
        profile = fitz.image_profile(image.data)
        if not profile:
            raise ValueError(f"{image.name} is not a decodable image")

        detected = IMAGE_EXTENSIONS.get(profile.get("ext", ""), "")
        if detected not in filetypes:
            raise ValueError(
                f"{image.name} is {profile.get('ext') or 'unknown'}, expected {' or '.join(filetypes)}"
            )
        logger.debug(f"{image.name}: {detected} {profile['width']}x{profile['height']}")
        return profile["width"], profile["height"]
