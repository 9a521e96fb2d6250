# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import io
from unittest import mock

import pytest

from remote_iso.fileserver import utils
from remote_iso.fileserver.utils import (
    BadRequestError,
    RangeNotSatisfiableError,
    RangeRequest,
    ServedFile,
    build_served_files,
)


class TestBuildServedFiles:
    def test_only_disc_images(self):
        served = build_served_files(
            [
                "/games/a.iso",
                "/games/b.CSO",
                "/games/c.Iso",
                "/games/d.pbp",
                "/games/e.iso.zip",
                "/games/folder",
            ]
        )
        assert sorted(served) == ["/a.iso", "/b.CSO", "/c.Iso"]

    def test_spaces_escaped(self):
        served = build_served_files(["C:/games/Foo Bar.iso"])
        assert served == {"/Foo%20Bar.iso": ServedFile("/Foo%20Bar.iso", "C:/games/Foo Bar.iso")}

    def test_last_duplicate_wins(self):
        served = build_served_files(["/one/game.iso", "/two/game.iso"])
        assert served == {"/game.iso": ServedFile("/game.iso", "/two/game.iso")}

    def test_bare_filename(self):
        assert list(build_served_files(["game.cso"])) == ["/game.cso"]

    def test_windows_separators(self):
        with mock.patch.object(utils.os, "name", "nt"):
            assert list(build_served_files(["C:\\games\\x y.iso"])) == ["/x%20y.iso"]

    def test_empty(self):
        assert build_served_files([]) == {}


class TestRangeRequest:
    def test_parse(self):
        assert RangeRequest.parse("bytes=10-20") == RangeRequest(10, 20)
        assert RangeRequest.parse("bytes=10-20").length == 11

    def test_parse_negative_start(self):
        assert RangeRequest.parse("bytes=-1-20") == RangeRequest(-1, 20)

    @pytest.mark.parametrize(
        "header",
        ["bytes=10-", "bytes=-20", "bytes=a-b", "10-20", "bytes=1-2,3-4", "bytes= 5 - 10"],
    )
    def test_parse_malformed(self, header):
        with pytest.raises(BadRequestError):
            RangeRequest.parse(header)

    @pytest.mark.parametrize("start,end", [(-1, 5), (6, 5), (0, 100)])
    def test_check_out_of_bounds(self, start, end):
        with pytest.raises(RangeNotSatisfiableError):
            RangeRequest(start, end).check(100)

    def test_check_in_bounds(self):
        RangeRequest(0, 99).check(100)
        RangeRequest(99, 99).check(100)

    def test_content_range(self):
        assert RangeRequest(5, 9).content_range(100) == "bytes 5-9/100"


class TestIterRange:
    def test_chunks(self):
        fp = io.BytesIO(b"x" * 100)
        chunks = list(utils.iter_range(fp, 50, chunk_size=16))
        assert [len(c) for c in chunks] == [16, 16, 16, 2]
        assert fp.closed

    def test_short_file(self):
        fp = io.BytesIO(b"abc")
        assert b"".join(utils.iter_range(fp, 10)) == b"abc"
        assert fp.closed

    def test_read_error_aborts(self):
        fp = mock.MagicMock()
        fp.read.side_effect = [b"ab", OSError("disk gone")]
        assert list(utils.iter_range(fp, 10, chunk_size=2)) == [b"ab"]
        fp.close.assert_called_once()

    def test_open_range(self, tmp_path):
        path = tmp_path / "f.iso"
        path.write_bytes(b"0123456789")
        fp = utils.open_range(str(path), 4)
        assert b"".join(utils.iter_range(fp, 3)) == b"456"

    def test_open_range_missing(self, tmp_path):
        with pytest.raises(OSError):
            utils.open_range(str(tmp_path / "missing.iso"), 0)
