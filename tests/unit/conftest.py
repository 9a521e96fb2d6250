# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import pytest

from remote_iso.conf import CONF


@pytest.fixture(autouse=True)
def reset_conf():
    """Drop overrides left behind by a server run."""
    yield
    CONF.clear_override("port", group="remote_iso")


@pytest.fixture
def iso_file(tmp_path):
    """A disc image with a recognizable byte pattern."""
    path = tmp_path / "Foo Bar.iso"
    path.write_bytes(bytes(range(256)) * 200)
    return path


@pytest.fixture
def directory(mocker):
    """A DirectoryClient that never leaves the machine."""
    client = mocker.Mock()
    client.register.return_value = True
    client.list_peers.return_value = []
    return client
