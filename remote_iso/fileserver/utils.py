"""Utility helpers for the fileserver implementation (framework-agnostic)."""

# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
import logging
import os
import re
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterable, Iterator

LOG = logging.getLogger(__name__)

CHUNK_READ_SIZE = 16 * 1024

SERVED_EXTENSIONS = (".iso", ".cso")

_RANGE_RE = re.compile(r"bytes=(-?\d+)-(-?\d+)")


class BadRequestError(Exception):
    """Raised when a client input is invalid."""

    pass


class RangeNotSatisfiableError(Exception):
    """Raised when a requested range falls outside of the file."""

    pass


@dataclass(frozen=True)
class ServedFile:
    """A local file exposed under a URL path."""

    url_path: str
    absolute_path: str


@dataclass(frozen=True)
class RangeRequest:
    """An inclusive byte span requested by a client."""

    start: int
    end: int

    @classmethod
    def parse(cls, header: str) -> "RangeRequest":
        """Parse a ``Range`` header of the form ``bytes=<start>-<end>``.

        Raises BadRequestError for anything else, including open-ended,
        suffix and multi-range forms.
        """
        match = _RANGE_RE.fullmatch(header.strip())
        if match is None:
            raise BadRequestError(f"unsupported range: {header!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def check(self, size: int) -> None:
        """Raise RangeNotSatisfiableError unless the span fits in ``size`` bytes."""
        if self.start < 0 or self.start > self.end or self.end >= size:
            raise RangeNotSatisfiableError(
                f"range {self.start}-{self.end} outside of file of size {size}"
            )

    def content_range(self, size: int) -> str:
        """Return the ``Content-Range`` header value for this span."""
        return f"bytes {self.start}-{self.end}/{size}"


def _basename(path: str) -> str:
    seps = "\\/" if os.name == "nt" else "/"
    pos = max(path.rfind(sep) for sep in seps)
    return path[pos + 1 :]  # noqa: E203


def url_path_for(path: str) -> str:
    """Return the URL path a file is served under."""
    return ("/" + _basename(path)).replace(" ", "%20")


def is_servable(path: str) -> bool:
    """Check if the file extension is one we serve."""
    return path.lower().endswith(SERVED_EXTENSIONS)


def build_served_files(paths: Iterable[str]) -> Dict[str, ServedFile]:
    """Build the URL path to file mapping for a server run.

    Only disc images are kept; directories and other formats are dropped.
    When two paths share a basename the last one wins.
    """
    served: Dict[str, ServedFile] = {}
    for path in paths:
        url_path = url_path_for(path)
        if not is_servable(url_path):
            LOG.debug("Not serving %s: unsupported file type", path)
            continue
        if url_path in served:
            LOG.debug("%s replaces %s at %s", path, served[url_path].absolute_path, url_path)
        served[url_path] = ServedFile(url_path, path)
    return served


def open_range(path: str, start: int) -> BinaryIO:
    """Open a file for reading, positioned at ``start``.

    Raises OSError when the file cannot be opened or seeked.
    """
    fp = open(path, "rb")
    try:
        fp.seek(start)
    except OSError:
        fp.close()
        raise
    return fp


def iter_range(fp: BinaryIO, length: int, chunk_size: int = CHUNK_READ_SIZE) -> Iterator[bytes]:
    """Yield ``length`` bytes from ``fp`` in chunks, then close it.

    A read failure or a short file ends the stream early.
    """
    remaining = length
    try:
        while remaining > 0:
            try:
                buf = fp.read(min(remaining, chunk_size))
            except OSError as exc:
                LOG.warning("Aborting transfer of %s: %s", getattr(fp, "name", fp), exc)
                return
            if not buf:
                LOG.warning(
                    "Aborting transfer of %s: %d bytes missing",
                    getattr(fp, "name", fp),
                    remaining,
                )
                return
            remaining -= len(buf)
            yield buf
    finally:
        fp.close()
