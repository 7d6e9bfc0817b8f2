"""
Test Suite for the PDF Desk front-ends
======================================
Flask test client against the JSON API and page shell, plus the click CLI.
"""

from __future__ import annotations

import io
import re

import fitz
import pytest
from click.testing import CliRunner

from conftest import make_image, make_pdf, page_texts
from pdfdesk.cli import cli
from pdfdesk.server import create_app


def _upload(data: bytes, filename: str):
    return (io.BytesIO(data), filename)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "MAX_IMAGES": None,
        "DOWNLOAD_GRACE_SECONDS": 60.0,
        "LOG_LEVEL": "WARNING",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════════
# PAGE SHELL
# ═══════════════════════════════════════════════════════════════════════════════


class TestPages:
    def test_home(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert b'data-page="page-home"' in resp.data

    def test_tool_page_highlights_nav(self, client):
        html = client.get("/split-pdf").get_data(as_text=True)
        assert 'data-page="page-split-pdf"' in html
        assert re.search(r'data-route="/split-pdf"\s+class="nav-link active"', html)
        assert re.search(r'data-route="/pdf-tools"\s+class="nav-link active"', html)
        assert re.search(r'data-route="/merge-pdf"\s+class="nav-link"', html)

    def test_drop_zones(self, client):
        html = client.get("/merge-pdf").get_data(as_text=True)
        assert html.count('class="dropzone"') == 6
        assert 'name="file1"' in html and 'name="file2"' in html
        assert "or drag and drop" in html
        assert "Formats: .pdf,application/pdf" in html
        assert "Multiple files allowed" in html
        assert 'class="dropzone-error error-message hidden"' in html

    def test_image_limit_hint(self):
        client = create_app({
            "TESTING": True,
            "MAX_IMAGES": 3,
            "DOWNLOAD_GRACE_SECONDS": 60.0,
            "LOG_LEVEL": "WARNING",
        }).test_client()
        html = client.get("/image-to-pdf").get_data(as_text=True)
        assert "Up to 3 files" in html
        assert 'data-max-files="3"' in html

    def test_unknown_path_shows_home(self, client):
        resp = client.get("/does/not/exist")
        assert resp.status_code == 200
        assert b'data-page="page-home"' in resp.data

    def test_unknown_api_path(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Not found"

    def test_health(self, client):
        body = client.get("/api/health").get_json()
        assert body["status"] == "healthy"

    def test_info(self, client):
        body = client.get("/api/info").get_json()
        assert "merge" in body["capabilities"]
        assert body["engine"] == "PyMuPDF"


# ═══════════════════════════════════════════════════════════════════════════════
# MERGE / SPLIT / COMPRESS
# ═══════════════════════════════════════════════════════════════════════════════


class TestMergeEndpoint:
    def test_merge_and_download(self, client):
        resp = client.post("/api/merge", data={
            "file1": _upload(make_pdf(2), "a.pdf"),
            "file2": _upload(make_pdf(1, label="Tail"), "b.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "PDFs merged successfully! Click the button below to download."
        assert body["download"]["filename"].startswith("merged-")

        download = client.get(body["download"]["url"])
        assert download.status_code == 200
        assert download.mimetype == "application/pdf"
        assert "attachment" in download.headers["Content-Disposition"]
        assert page_texts(download.data) == ["Page 1", "Page 2", "Tail 1"]

    def test_second_file_missing(self, client):
        resp = client.post("/api/merge", data={
            "file1": _upload(make_pdf(1), "a.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Please select both PDF files to merge"

    def test_wrong_file_type(self, client):
        resp = client.post("/api/merge", data={
            "file1": _upload(make_pdf(1), "a.pdf"),
            "file2": _upload(b"hello", "notes.txt"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_corrupt_pdf(self, client):
        resp = client.post("/api/merge", data={
            "file1": _upload(make_pdf(1), "a.pdf"),
            "file2": _upload(b"garbage", "b.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 422
        assert resp.get_json()["error"] == (
            "Failed to merge PDFs. Please ensure all files are valid PDF documents."
        )

    def test_new_merge_revokes_old_download(self, client):
        def merge():
            return client.post("/api/merge", data={
                "file1": _upload(make_pdf(1), "a.pdf"),
                "file2": _upload(make_pdf(1), "b.pdf"),
            }, content_type="multipart/form-data").get_json()["download"]["url"]

        first, second = merge(), merge()
        assert client.get(first).status_code == 404
        assert client.get(second).status_code == 200


class TestSplitEndpoint:
    def test_split(self, client):
        resp = client.post("/api/split", data={
            "file": _upload(make_pdf(5), "five.pdf"),
            "start": "2",
            "end": "4",
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["total_pages"] == 5
        assert body["download"]["filename"].startswith("split-pages-2-4-")
        pdf = client.get(body["download"]["url"]).data
        assert page_texts(pdf) == ["Page 2", "Page 3", "Page 4"]

    def test_range_outside_document(self, client):
        resp = client.post("/api/split", data={
            "file": _upload(make_pdf(3), "three.pdf"),
            "start": "2",
            "end": "7",
        }, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid page range. Please enter values between 1 and 3"

    def test_missing_bounds(self, client):
        resp = client.post("/api/split", data={
            "file": _upload(make_pdf(3), "three.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_no_file(self, client):
        resp = client.post("/api/split", data={"start": "1", "end": "1"})
        assert resp.status_code == 400

    def test_corrupt_pdf(self, client):
        resp = client.post("/api/split", data={
            "file": _upload(b"garbage", "x.pdf"),
            "start": "1",
            "end": "1",
        }, content_type="multipart/form-data")
        assert resp.status_code == 422
        assert resp.get_json()["error"] == (
            "Failed to split PDF. Please ensure the file is a valid PDF document."
        )

    def test_bounds_read_leading_integer(self, client):
        resp = client.post("/api/split", data={
            "file": _upload(make_pdf(5), "five.pdf"),
            "start": "2.9",
            "end": "3abc",
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        pdf = client.get(resp.get_json()["download"]["url"]).data
        assert page_texts(pdf) == ["Page 2", "Page 3"]

    @pytest.mark.parametrize("changed, expected", [("start", (5, 5)), ("end", (3, 3))])
    def test_range_resolution(self, client, changed, expected):
        body = client.post("/api/split/range", json={
            "total": 10, "start": 5, "end": 3, "changed": changed,
        }).get_json()
        assert (body["start"], body["end"]) == expected

    def test_range_clamps(self, client):
        body = client.post("/api/split/range", json={
            "total": 4, "start": "0", "end": "99",
        }).get_json()
        assert (body["start"], body["end"]) == (1, 4)

    def test_range_needs_total(self, client):
        assert client.post("/api/split/range", json={"start": 1}).status_code == 400


class TestCompressEndpoint:
    def test_compress(self, client):
        pdf = make_pdf(3)
        resp = client.post("/api/compress", data={
            "file": _upload(pdf, "three.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["original_size"] == len(pdf)
        assert body["new_size"] == body["download"]["size"]
        assert body["message"].startswith("Original size: ")
        assert f"Reduction: {body['reduction_percent']}%." in body["message"]

    def test_corrupt(self, client):
        resp = client.post("/api/compress", data={
            "file": _upload(b"garbage", "x.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 422


# ═══════════════════════════════════════════════════════════════════════════════
# CONVERSION
# ═══════════════════════════════════════════════════════════════════════════════


class TestPdfToImageEndpoint:
    def test_selected_pages(self, client):
        resp = client.post("/api/pdf-to-image", data={
            "file": _upload(make_pdf(4), "four.pdf"),
            "pages": ["3", "1"],
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["succeeded"] == 2
        assert body["failed"] == 0
        assert [d["page_number"] for d in body["downloads"]] == [1, 3]
        assert body["message"].startswith("Successfully converted 2 pages")

        image = client.get(body["downloads"][0]["url"])
        assert image.mimetype == "image/png"
        assert image.data.startswith(b"\x89PNG")

    def test_all_pages(self, client):
        body = client.post("/api/pdf-to-image", data={
            "file": _upload(make_pdf(3), "three.pdf"),
            "all": "true",
        }, content_type="multipart/form-data").get_json()
        assert body["succeeded"] == 3

    def test_no_pages(self, client):
        resp = client.post("/api/pdf-to-image", data={
            "file": _upload(make_pdf(3), "three.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Please select at least one page to convert"

    def test_page_out_of_range(self, client):
        resp = client.post("/api/pdf-to-image", data={
            "file": _upload(make_pdf(3), "three.pdf"),
            "pages": ["9"],
        }, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_rerun_replaces_images(self, client):
        def convert():
            return client.post("/api/pdf-to-image", data={
                "file": _upload(make_pdf(2), "two.pdf"),
                "all": "true",
            }, content_type="multipart/form-data").get_json()["downloads"]

        old, new = convert(), convert()
        assert all(client.get(d["url"]).status_code == 404 for d in old)
        assert all(client.get(d["url"]).status_code == 200 for d in new)

    def test_corrupt_pdf(self, client):
        resp = client.post("/api/pdf-to-image", data={
            "file": _upload(b"garbage", "x.pdf"),
            "all": "true",
        }, content_type="multipart/form-data")
        assert resp.status_code == 422
        assert resp.get_json()["error"] == "Failed to convert selected pages. Please try again."


class TestPageSelectionEndpoint:
    def test_toggle_labels(self, client):
        body = client.post("/api/pdf-to-image/selection", json={
            "total": 4, "pages": [3],
        }).get_json()
        assert body == {
            "pages": [3],
            "label": "1 page selected",
            "action_label": "Convert 1 Page to Image",
            "can_convert": True,
        }

    def test_select_all(self, client):
        body = client.post("/api/pdf-to-image/selection", json={
            "total": 3, "pages": [2], "select": "all",
        }).get_json()
        assert body["pages"] == [1, 2, 3]
        assert body["action_label"] == "Convert 3 Pages to Images"

    def test_deselect_all(self, client):
        body = client.post("/api/pdf-to-image/selection", json={
            "total": 3, "pages": [1, 2], "select": "none",
        }).get_json()
        assert body["pages"] == []
        assert body["label"] == "No pages selected"
        assert body["can_convert"] is False

    def test_page_outside_document(self, client):
        resp = client.post("/api/pdf-to-image/selection", json={"total": 2, "pages": [5]})
        assert resp.status_code == 400

    def test_needs_total(self, client):
        resp = client.post("/api/pdf-to-image/selection", json={"pages": [1]})
        assert resp.status_code == 400


class TestImageToPdfEndpoint:
    def test_images(self, client):
        resp = client.post("/api/image-to-pdf", data={
            "files": [
                _upload(make_image("png", 40, 20), "wide.png"),
                _upload(make_image("jpg", 30, 60), "tall.jpg"),
            ],
        }, content_type="multipart/form-data")
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["files"]) == 2
        assert body["files"][0].startswith("wide.png (")

        pdf = client.get(body["download"]["url"]).data
        with fitz.open(stream=pdf, filetype="pdf") as doc:
            assert [(p.rect.width, p.rect.height) for p in doc] == [(40, 20), (30, 60)]

    def test_max_images(self):
        client = create_app({
            "TESTING": True,
            "MAX_IMAGES": 1,
            "DOWNLOAD_GRACE_SECONDS": 60.0,
            "LOG_LEVEL": "WARNING",
        }).test_client()
        resp = client.post("/api/image-to-pdf", data={
            "files": [
                _upload(make_image("png"), "a.png"),
                _upload(make_image("png"), "b.png"),
            ],
        }, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Maximum 1 file(s) allowed"

    def test_non_image(self, client):
        resp = client.post("/api/image-to-pdf", data={
            "files": [_upload(make_pdf(1), "doc.pdf")],
        }, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_undecodable_image(self, client):
        resp = client.post("/api/image-to-pdf", data={
            "files": [_upload(b"not an image", "fake.png")],
        }, content_type="multipart/form-data")
        assert resp.status_code == 422

    def test_unsupported_image_format(self, client):
        resp = client.post("/api/image-to-pdf", data={
            "files": [_upload(make_image("pnm"), "scan.pnm")],
        }, content_type="multipart/form-data")
        assert resp.status_code == 422
        assert resp.get_json()["error"] == (
            "Failed to convert image to PDF. Please ensure the file is a valid image."
        )


# ═══════════════════════════════════════════════════════════════════════════════
# PREVIEW
# ═══════════════════════════════════════════════════════════════════════════════


class TestPreviewEndpoints:
    def _open(self, client, pages=3, slot="split", replace=None):
        data = {"file": _upload(make_pdf(pages), "doc.pdf")}
        if replace:
            data["replace"] = replace
        return client.post(f"/api/preview/{slot}", data=data, content_type="multipart/form-data")

    def test_open_and_navigate(self, client):
        state = self._open(client).get_json()
        assert state["page_info"] == "Page 1 of 3"
        assert state["has_previous"] is False
        base = f"/api/preview/split/{state['token']}"

        state = client.post(f"{base}/previous").get_json()
        assert state["moved"] is False
        assert state["current_page"] == 1

        client.post(f"{base}/next")
        state = client.post(f"{base}/next").get_json()
        assert state["current_page"] == 3
        assert state["has_next"] is False

        state = client.post(f"{base}/next").get_json()
        assert state["moved"] is False

    def test_goto(self, client):
        token = self._open(client).get_json()["token"]
        assert client.post(f"/api/preview/split/{token}/goto/2").get_json()["current_page"] == 2
        state = client.post(f"/api/preview/split/{token}/goto/9").get_json()
        assert state["moved"] is False
        assert state["current_page"] == 2

    def test_page_png(self, client):
        token = self._open(client, slot="compress").get_json()["token"]
        resp = client.get(f"/api/preview/compress/{token}/page")
        assert resp.status_code == 200
        assert resp.mimetype == "image/png"

    def test_no_preview_loaded(self, client):
        assert client.get("/api/preview/pdf-to-image/unknown-token/page").status_code == 404

    def test_token_is_bound_to_slot(self, client):
        token = self._open(client, slot="split").get_json()["token"]
        assert client.get(f"/api/preview/compress/{token}/page").status_code == 404

    def test_unknown_slot(self, client):
        assert self._open(client, slot="merge").status_code == 404

    def test_unknown_direction(self, client):
        token = self._open(client).get_json()["token"]
        assert client.post(f"/api/preview/split/{token}/sideways").status_code == 404

    def test_corrupt_pdf(self, client):
        resp = client.post("/api/preview/split", data={
            "file": _upload(b"garbage", "x.pdf"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 422

    def test_close(self, client):
        token = self._open(client).get_json()["token"]
        assert client.delete(f"/api/preview/split/{token}").get_json()["closed"] is True
        assert client.get(f"/api/preview/split/{token}/page").status_code == 404
        assert client.delete(f"/api/preview/split/{token}").get_json()["closed"] is False

    def test_two_clients_do_not_share_a_preview(self, app):
        first, second = app.test_client(), app.test_client()
        first_state = self._open(first, pages=5).get_json()
        second_state = self._open(second, pages=2).get_json()
        assert first_state["token"] != second_state["token"]

        state = first.post(f"/api/preview/split/{first_state['token']}/next").get_json()
        assert state["total_pages"] == 5
        assert state["current_page"] == 2

        state = second.post(f"/api/preview/split/{second_state['token']}/next").get_json()
        assert state["total_pages"] == 2
        assert state["current_page"] == 2
        assert state["has_next"] is False

    def test_reopen_replaces_own_preview(self, client):
        old = self._open(client, pages=3).get_json()["token"]
        other = self._open(client, pages=4, slot="split").get_json()["token"]
        new_state = self._open(client, pages=2, replace=old).get_json()

        assert new_state["total_pages"] == 2
        assert client.get(f"/api/preview/split/{old}/page").status_code == 404
        assert client.get(f"/api/preview/split/{other}/page").status_code == 200
        assert client.get("/api/health").get_json()["open_previews"] == 2


# ═══════════════════════════════════════════════════════════════════════════════
# DOWNLOAD
# ═══════════════════════════════════════════════════════════════════════════════


class TestDownload:
    def test_released_after_grace(self):
        client = create_app({
            "TESTING": True,
            "MAX_IMAGES": None,
            "DOWNLOAD_GRACE_SECONDS": 0.0,
            "LOG_LEVEL": "WARNING",
        }).test_client()
        url = client.post("/api/compress", data={
            "file": _upload(make_pdf(1), "one.pdf"),
        }, content_type="multipart/form-data").get_json()["download"]["url"]

        assert client.get(url).status_code == 200
        resp = client.get(url)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Download is no longer available."

    def test_unknown_token(self, client):
        assert client.get("/api/download/bogus").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:
    @pytest.fixture
    def pdf_path(self, tmp_path):
        path = tmp_path / "doc.pdf"
        path.write_bytes(make_pdf(3))
        return path

    def test_merge(self, tmp_path, pdf_path):
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["merge", str(pdf_path), str(pdf_path), "-o", str(out)])
        assert result.exit_code == 0, result.output
        (merged,) = out.glob("merged-*.pdf")
        assert len(page_texts(merged.read_bytes())) == 6

    def test_split(self, tmp_path, pdf_path):
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["split", str(pdf_path), "-s", "2", "-e", "3", "-o", str(out)])
        assert result.exit_code == 0, result.output
        (part,) = out.glob("split-pages-2-3-*.pdf")
        assert page_texts(part.read_bytes()) == ["Page 2", "Page 3"]

    def test_split_bad_range(self, tmp_path, pdf_path):
        result = CliRunner().invoke(
            cli, ["split", str(pdf_path), "-s", "2", "-e", "8", "-o", str(tmp_path)]
        )
        assert result.exit_code == 1
        assert "Invalid page range" in result.output

    def test_to_images(self, tmp_path, pdf_path):
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["to-images", str(pdf_path), "-p", "1,3", "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert sorted(p.name.split("-")[1] for p in out.glob("page-*.png")) == ["1", "3"]

    def test_from_images(self, tmp_path):
        image = tmp_path / "pic.png"
        image.write_bytes(make_image("png"))
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["from-images", str(image), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert len(list(out.glob("images-to-pdf-*.pdf"))) == 1

    def test_info(self, pdf_path):
        result = CliRunner().invoke(cli, ["info", str(pdf_path)])
        assert result.exit_code == 0, result.output
        assert "Pages" in result.output
        assert "doc.pdf" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
