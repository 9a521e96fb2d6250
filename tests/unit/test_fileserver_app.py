# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path

import pytest
from webob import Request

from remote_iso.fileserver.server import get_range_ep, make_application
from remote_iso.fileserver.utils import CHUNK_READ_SIZE, ServedFile, build_served_files


@pytest.fixture
def application(iso_file: Path):
    return make_application(build_served_files([str(iso_file)]))


def _call_app(app, method: str, path: str, headers: dict | None = None):
    """Helper to invoke the WSGI application with a Request."""
    req = Request.blank(path, method=method, headers=headers or {})
    return req.get_response(app)


def test_head(application, iso_file: Path):
    resp = _call_app(application, "HEAD", "/Foo%20Bar.iso")
    assert resp.status_int == 200
    assert resp.content_length == iso_file.stat().st_size
    assert resp.content_type == "application/octet-stream"
    assert resp.headers["Accept-Ranges"] == "bytes"
    assert resp.body == b""


@pytest.mark.parametrize(
    "start,end",
    [(0, 0), (0, 99), (1000, 33333), (51199, 51199), (0, 51199)],
)
def test_get_range(application, iso_file: Path, start: int, end: int):
    data = iso_file.read_bytes()
    resp = _call_app(application, "GET", "/Foo%20Bar.iso", {"Range": f"bytes={start}-{end}"})
    assert resp.status_int == 206
    assert resp.content_length == end - start + 1
    assert resp.headers["Content-Range"] == f"bytes {start}-{end}/{len(data)}"
    assert resp.body == data[start : end + 1]  # noqa: E203


@pytest.mark.parametrize("header", ["bytes=100-51200", "bytes=10-5", "bytes=-5-10"])
def test_get_range_not_satisfiable(application, header: str):
    resp = _call_app(application, "GET", "/Foo%20Bar.iso", {"Range": header})
    assert resp.status_int == 416
    assert resp.content_type == "text/plain"
    assert resp.text == "Range goes outside of file."


@pytest.mark.parametrize(
    "header", ["bytes=5-", "bytes=-500", "items=0-1", "bytes=0-1,4-5", "", "bytes=0 - 10"]
)
def test_get_range_malformed(application, header: str):
    resp = _call_app(application, "GET", "/Foo%20Bar.iso", {"Range": header})
    assert resp.status_int == 400
    assert resp.text == "Could not understand range request."


def test_get_without_range(application):
    resp = _call_app(application, "GET", "/Foo%20Bar.iso")
    assert resp.status_int == 418
    assert resp.text == "This server only supports range requests."


def test_get_without_range_missing_file(application, iso_file: Path):
    iso_file.unlink()
    resp = _call_app(application, "GET", "/Foo%20Bar.iso")
    assert resp.status_int == 418


def test_missing_file(application, iso_file: Path):
    iso_file.unlink()
    resp = _call_app(application, "HEAD", "/Foo%20Bar.iso")
    assert resp.status_int == 500
    resp = _call_app(application, "GET", "/Foo%20Bar.iso", {"Range": "bytes=0-1"})
    assert resp.status_int == 500
    assert resp.text == "File access failed."


def test_unreadable_file(application, mocker):
    mocker.patch(
        "remote_iso.fileserver.server.open_range", side_effect=PermissionError("denied")
    )
    resp = _call_app(application, "GET", "/Foo%20Bar.iso", {"Range": "bytes=0-1"})
    assert resp.status_int == 500


def test_unknown_path(application):
    resp = _call_app(application, "GET", "/other.iso", {"Range": "bytes=0-1"})
    assert resp.status_int == 404


def test_unsupported_method(application):
    resp = _call_app(application, "PUT", "/Foo%20Bar.iso")
    assert resp.status_int == 405
    assert set(resp.allow) == {"GET", "HEAD"}


def test_query_string_ignored(application):
    resp = _call_app(application, "HEAD", "/Foo%20Bar.iso?x=1")
    assert resp.status_int == 200


def test_get_range_streams_fixed_chunks(iso_file: Path):
    data = iso_file.read_bytes()
    req = Request.blank("/Foo%20Bar.iso", headers={"Range": f"bytes=0-{len(data) - 1}"})
    resp = get_range_ep(req, ServedFile("/Foo%20Bar.iso", str(iso_file)))
    chunks = list(resp.app_iter)
    assert CHUNK_READ_SIZE == 16 * 1024
    assert len(chunks) == 4
    assert all(len(chunk) <= 16 * 1024 for chunk in chunks)
    assert b"".join(chunks) == data
