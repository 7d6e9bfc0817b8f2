"""
Shared fixtures: small PDFs and images built with PyMuPDF.
"""

from __future__ import annotations

import fitz
import pytest

from pdfdesk.models import SelectedFile


def make_pdf(pages: int, label: str = "Page") -> bytes:
    """A PDF whose pages read "<label> 1", "<label> 2", ..."""
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=200, height=300)
        page.insert_text((20, 40), f"{label} {i + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def make_image(fmt: str = "png", width: int = 40, height: int = 20) -> bytes:
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
    pix.clear_with(200)
    return pix.tobytes(fmt)


def page_texts(data: bytes) -> list[str]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text().strip() for page in doc]


@pytest.fixture
def three_page_pdf() -> SelectedFile:
    return SelectedFile(name="three.pdf", content_type="application/pdf", data=make_pdf(3))


@pytest.fixture
def two_page_pdf() -> SelectedFile:
    return SelectedFile(name="two.pdf", content_type="application/pdf", data=make_pdf(2, label="Extra"))


@pytest.fixture
def broken_pdf() -> SelectedFile:
    return SelectedFile(name="broken.pdf", content_type="application/pdf", data=b"not a pdf at all")


@pytest.fixture
def png_image() -> SelectedFile:
    return SelectedFile(name="wide.png", content_type="image/png", data=make_image("png", 40, 20))


@pytest.fixture
def jpeg_image() -> SelectedFile:
    return SelectedFile(name="tall.jpg", content_type="image/jpeg", data=make_image("jpg", 30, 60))
