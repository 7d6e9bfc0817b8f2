"""
HTTP Front-End
==============
Flask app serving the browser shell and the JSON API behind each tool.

Every operation runs synchronously inside its request, one file and one
page at a time. Results are held in memory and handed out through
one-shot download tokens.

Endpoints:
    GET    /, /pdf-tools, /merge-pdf ...     → Browser shell for that page
    POST   /api/merge                        → Merge two PDFs
    POST   /api/split                        → Extract a page range
    POST   /api/split/range                  → Clamp and order a page range
    POST   /api/compress                     → Re-serialize a PDF smaller
    POST   /api/pdf-to-image                 → Rasterize selected pages
    POST   /api/pdf-to-image/selection       → Apply a checkbox change, get labels
    POST   /api/image-to-pdf                 → Build a PDF from images
    POST   /api/preview/<slot>                       → Load a preview, get a token
    GET    /api/preview/<slot>/<token>/page          → PNG of the current page
    POST   /api/preview/<slot>/<token>/next|previous → Move the preview
    POST   /api/preview/<slot>/<token>/goto/<n>      → Jump to a page
    DELETE /api/preview/<slot>/<token>               → Drop a preview
    GET    /api/download/<token>             → Fetch a result
    GET    /api/health                       → Health check
    GET    /api/info                         → Version and capabilities
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
from flask import Flask, jsonify, render_template, request, send_file, url_for
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from . import __version__
from .delivery import DownloadRegistry
from .engine import PdfToolkit, ToolkitConfig, merge_ready
from .exceptions import (
    ArtifactNotFound,
    ConvertFailed,
    FileValidationError,
    InvalidPageRange,
    OperationFailed,
    SplitFailed,
    ValidationFailure,
)
from .intake import IMAGES_MULTI, PDF_SINGLE, intake
from .models import Artifact, SelectedFile
from .page_range import PageRange, parse_page, resolve
from .preview import DEFAULT_MAX_SESSIONS, PreviewStore
from .routes import NAV_LINKS, ROUTES, navigate
from .selection import PageSelection

logger = logging.getLogger(__name__)

_pkg_dir = Path(__file__).parent
app = Flask(
    __name__,
    template_folder=str(_pkg_dir / "templates"),
    static_folder=str(_pkg_dir / "static"),
)
CORS(app)

PREVIEW_SLOTS = frozenset({"split", "compress", "pdf-to-image"})

# ─── In-memory stores (reset by create_app) ───────────────────────────────────

toolkit = PdfToolkit()
downloads = DownloadRegistry()
previews = PreviewStore()


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    global toolkit, downloads, previews

    if config:
        app.config.update(config)

    app.config.setdefault("MAX_CONTENT_LENGTH", 100 * 1024 * 1024)  # 100MB
    app.config.setdefault("MAX_IMAGES", None)
    app.config.setdefault("PREVIEW_SCALE", 1.5)
    app.config.setdefault("MAX_PREVIEWS", DEFAULT_MAX_SESSIONS)
    app.config.setdefault("RASTER_SCALE", 2.0)
    app.config.setdefault("DOWNLOAD_GRACE_SECONDS", 0.2)
    app.config.setdefault("LOG_LEVEL", "INFO")
    app.config.setdefault("LOG_FILE", None)

    toolkit_config = ToolkitConfig(
        preview_scale=app.config["PREVIEW_SCALE"],
        raster_scale=app.config["RASTER_SCALE"],
        max_images=app.config["MAX_IMAGES"],
        download_grace_seconds=app.config["DOWNLOAD_GRACE_SECONDS"],
        log_level=app.config["LOG_LEVEL"],
        log_file=app.config["LOG_FILE"],
    )

    previews.close_all()
    toolkit = PdfToolkit(toolkit_config)
    downloads = DownloadRegistry(grace_seconds=toolkit_config.download_grace_seconds)
    previews = PreviewStore(
        scale=toolkit_config.preview_scale,
        max_sessions=app.config["MAX_PREVIEWS"],
    )

    return app


# ─── Error Handling ───────────────────────────────────────────────────────────


@app.errorhandler(ValidationFailure)
def handle_validation(error: ValidationFailure):
    return jsonify({"error": error.user_message}), 400


@app.errorhandler(OperationFailed)
def handle_operation_failed(error: OperationFailed):
    return jsonify({"error": error.user_message}), 422


@app.errorhandler(ArtifactNotFound)
def handle_missing_artifact(error: ArtifactNotFound):
    return jsonify({"error": error.user_message}), 404


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(error):
    return jsonify({"error": "Upload is too large"}), 413


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _upload(field: str) -> Optional[SelectedFile]:
    """Read a single upload, or None when the field is missing or empty."""
    upload = request.files.get(field)
    if upload is None or not upload.filename:
        return None
    return SelectedFile.from_upload(upload)


def _single_pdf(field: str = "file") -> SelectedFile:
    uploads = [
        SelectedFile.from_upload(u)
        for u in request.files.getlist(field)
        if u.filename
    ]
    if not uploads:
        raise FileValidationError("Please select a PDF file")
    return intake(uploads, PDF_SINGLE)[0]


def _publish(artifact: Artifact, slot: str, replace: bool = True) -> dict:
    token = downloads.publish(artifact, slot=slot, replace=replace)
    payload = artifact.describe()
    payload["token"] = token
    payload["url"] = url_for("download", token=token)
    return payload


def _form_page(name: str) -> Optional[int]:
    return parse_page(request.form.get(name))


# ─── Pages ────────────────────────────────────────────────────────────────────


def _render_shell(route: str):
    nav = navigate(route)
    return render_template(
        "index.html",
        nav=nav,
        nav_links=NAV_LINKS,
        routes=ROUTES,
        pdf_rules=PDF_SINGLE,
        image_rules=IMAGES_MULTI.with_max_files(app.config.get("MAX_IMAGES")),
        version=__version__,
    )


def _page_view(route: str):
    def view():
        return _render_shell(route)
    return view


for _route, _page_id in ROUTES.items():
    app.add_url_rule(
        _route,
        endpoint=_page_id.replace("-", "_"),
        view_func=_page_view(_route),
        methods=["GET"],
    )


@app.route("/<path:unknown>", methods=["GET"])
def fallback_page(unknown: str):
    """Unknown paths show the home page."""
    if unknown.startswith("api/"):
        return jsonify({"error": "Not found"}), 404
    return _render_shell("/" + unknown)


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "pdfdesk",
        "version": __version__,
        "pending_downloads": len(downloads),
        "open_previews": len(previews),
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Version and capability info."""
    return jsonify({
        "version": __version__,
        "engine": "PyMuPDF",
        "engine_version": fitz.VersionBind,
        "capabilities": [
            "merge",
            "split",
            "compress",
            "pdf_to_image",
            "image_to_pdf",
            "preview",
        ],
        "supported_formats": ["pdf", "png", "jpeg"],
        "max_images": app.config.get("MAX_IMAGES"),
    })


# ─── Merge ────────────────────────────────────────────────────────────────────


@app.route("/api/merge", methods=["POST"])
def merge_pdf():
    """
    Merge two PDFs.

    Multipart fields ``file1`` and ``file2``; both are required.
    """
    first, second = _upload("file1"), _upload("file2")
    if not merge_ready(first, second):
        raise FileValidationError("Please select both PDF files to merge")

    intake([first], PDF_SINGLE)
    intake([second], PDF_SINGLE)

    artifact = toolkit.merge([first, second])
    return jsonify({
        "message": "PDFs merged successfully! Click the button below to download.",
        "download": _publish(artifact, slot="merge"),
    })


# ─── Split ────────────────────────────────────────────────────────────────────


@app.route("/api/split", methods=["POST"])
def split_pdf():
    """
    Extract a page range.

    Multipart fields: ``file``, ``start``, ``end`` (1-based, inclusive).
    """
    file = _single_pdf()
    total = toolkit.page_count(file.data, error_cls=SplitFailed)

    start, end = _form_page("start"), _form_page("end")
    try:
        if start is None or end is None:
            raise InvalidPageRange()
        PageRange(start=start, end=end, total=total).check()
    except InvalidPageRange:
        raise InvalidPageRange(
            f"Invalid page range. Please enter values between 1 and {total}"
        ) from None

    artifact = toolkit.split(file, start, end)
    return jsonify({
        "message": "PDF split successfully! Click the button below to download.",
        "total_pages": total,
        "download": _publish(artifact, slot="split"),
    })


@app.route("/api/split/range", methods=["POST"])
def split_range():
    """
    Clamp a page range as the user edits it.

    JSON body: ``{"total": 10, "start": 5, "end": 3, "changed": "end"}``
    """
    data = request.get_json(silent=True) or {}
    total = data.get("total")
    if not isinstance(total, int) or total < 1:
        raise InvalidPageRange("Provide the document's total page count")

    changed = "end" if data.get("changed") == "end" else "start"
    page_range = resolve(total, data.get("start"), data.get("end"), changed=changed)
    return jsonify({
        "start": page_range.start,
        "end": page_range.end,
        "total": page_range.total,
    })


# ─── Compress ─────────────────────────────────────────────────────────────────


@app.route("/api/compress", methods=["POST"])
def compress_pdf():
    """Compress a PDF and report the size change."""
    file = _single_pdf()
    result = toolkit.compress(file)
    return jsonify({
        "message": f"{result.message} Click the button below to download.",
        "original_size": result.original_size,
        "new_size": result.new_size,
        "reduction_percent": result.reduction_percent,
        "download": _publish(result.artifact, slot="compress"),
    })


# ─── PDF to Image ─────────────────────────────────────────────────────────────


@app.route("/api/pdf-to-image", methods=["POST"])
def pdf_to_image():
    """
    Rasterize selected pages to PNG.

    Multipart fields: ``file`` and repeated ``pages`` values, or
    ``all=true`` to take every page.
    """
    file = _single_pdf()
    total = toolkit.page_count(file.data, error_cls=ConvertFailed)

    selection = PageSelection(total)
    if request.form.get("all", "").lower() in ("1", "true", "yes"):
        selection.select_all()
    else:
        for raw in request.form.getlist("pages"):
            try:
                page = int(raw)
            except ValueError:
                raise InvalidPageRange.for_total(total) from None
            selection.toggle(page, True)

    if not selection.can_convert:
        raise FileValidationError("Please select at least one page to convert")

    report = toolkit.pdf_to_images(file, selection.pages())

    downloads.clear("pdf-to-image")
    payloads = [
        dict(_publish(image.artifact, slot="pdf-to-image", replace=False),
             page_number=image.page_number)
        for image in report.images
    ]
    return jsonify({
        "message": f"{report.message} Click the buttons below to download:",
        "succeeded": report.succeeded,
        "failed": report.failed,
        "failed_pages": report.failed_pages,
        "downloads": payloads,
    })


@app.route("/api/pdf-to-image/selection", methods=["POST"])
def page_selection():
    """
    Apply a checkbox change and return the labels the form shows.

    JSON body: ``{"total": 4, "pages": [1, 3], "select": "all" | "none"}``
    where ``select`` is optional and overrides ``pages``.
    """
    data = request.get_json(silent=True) or {}
    total = data.get("total")
    if not isinstance(total, int) or total < 0:
        raise InvalidPageRange("Provide the document's total page count")

    try:
        selection = PageSelection(total, pages=[int(p) for p in data.get("pages") or []])
    except (TypeError, ValueError):
        raise InvalidPageRange.for_total(total) from None

    if data.get("select") == "all":
        selection.select_all()
    elif data.get("select") == "none":
        selection.deselect_all()

    return jsonify({
        "pages": selection.pages(),
        "label": selection.label,
        "action_label": selection.action_label,
        "can_convert": selection.can_convert,
    })


# ─── Image to PDF ─────────────────────────────────────────────────────────────


@app.route("/api/image-to-pdf", methods=["POST"])
def image_to_pdf():
    """Build a PDF from uploaded images (multipart field ``files``)."""
    images = [
        SelectedFile.from_upload(u)
        for u in request.files.getlist("files")
        if u.filename
    ]
    if not images:
        raise FileValidationError("Please select at least one image file")

    rules = IMAGES_MULTI.with_max_files(app.config.get("MAX_IMAGES"))
    images = intake(images, rules)

    artifact = toolkit.images_to_pdf(images)
    return jsonify({
        "message": "PDF created successfully! Click the button below to download.",
        "files": [image.label for image in images],
        "download": _publish(artifact, slot="image-to-pdf"),
    })


# ─── Preview ──────────────────────────────────────────────────────────────────


def _preview_session(slot: str, token: str):
    if slot not in PREVIEW_SLOTS:
        return None, (jsonify({"error": f"Unknown preview: {slot}"}), 404)
    session = previews.get(slot, token)
    if session is None:
        return None, (jsonify({"error": "No PDF loaded for preview"}), 404)
    return session, None


@app.route("/api/preview/<slot>", methods=["POST"])
def open_preview(slot: str):
    """
    Load a PDF into a tool's preview pane.

    Multipart fields: ``file``, and optionally ``replace`` holding the token
    of this client's previous preview, which is closed. The response carries
    the new session's ``token``.
    """
    if slot not in PREVIEW_SLOTS:
        return jsonify({"error": f"Unknown preview: {slot}"}), 404
    file = _single_pdf()
    token, session = previews.open(slot, file.data, replace=request.form.get("replace") or None)
    return jsonify(dict(session.state(), token=token))


@app.route("/api/preview/<slot>/<token>/page", methods=["GET"])
def preview_page(slot: str, token: str):
    """Render the current preview page. Rendered fresh on every request."""
    session, error = _preview_session(slot, token)
    if error:
        return error
    png = session.render()
    return send_file(io.BytesIO(png), mimetype="image/png")


@app.route("/api/preview/<slot>/<token>/<direction>", methods=["POST"])
def move_preview(slot: str, token: str, direction: str):
    session, error = _preview_session(slot, token)
    if error:
        return error
    if direction == "next":
        moved = session.next()
    elif direction == "previous":
        moved = session.previous()
    else:
        return jsonify({"error": f"Unknown direction: {direction}"}), 404
    return jsonify(dict(session.state(), token=token, moved=moved))


@app.route("/api/preview/<slot>/<token>/goto/<int:page>", methods=["POST"])
def goto_preview(slot: str, token: str, page: int):
    session, error = _preview_session(slot, token)
    if error:
        return error
    moved = session.go_to(page)
    return jsonify(dict(session.state(), token=token, moved=moved))


@app.route("/api/preview/<slot>/<token>", methods=["DELETE"])
def close_preview(slot: str, token: str):
    if slot not in PREVIEW_SLOTS:
        return jsonify({"error": f"Unknown preview: {slot}"}), 404
    return jsonify({"closed": previews.close(slot, token)})


# ─── Download ─────────────────────────────────────────────────────────────────


@app.route("/api/download/<token>", methods=["GET"])
def download(token: str):
    """Send a result as an attachment; the token expires shortly after."""
    artifact = downloads.claim(token)
    logger.info(f"Download started: {artifact.filename}")
    return send_file(
        io.BytesIO(artifact.data),
        mimetype=artifact.media_type,
        as_attachment=True,
        download_name=artifact.filename,
    )


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "127.0.0.1",
    port: int = 5000,
    debug: bool = False,
    config: dict = None,
):
    """Start the web front-end."""
    create_app(config)
    logger.info(f"Starting PDF Desk on {host}:{port}")
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
