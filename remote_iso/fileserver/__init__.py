# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Fileserver package exposing disc images over HTTP.

Serves a curated set of files for seekable byte-range reads by a peer on the
local network.
"""

from .server import RangeFileServer, make_application
from .utils import ServedFile, build_served_files

__all__ = [
    "RangeFileServer",
    "ServedFile",
    "build_served_files",
    "make_application",
]
