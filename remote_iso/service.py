# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Process entry points for sharing and finding disc images."""

import sys

from oslo_config import cfg
from oslo_log import log as logging
from oslo_service import service

from remote_iso.conf import CONF
from remote_iso.lifecycle import ServerLifecycle, ServerState
from remote_iso.scanner import PeerSearch

LOG = logging.getLogger(__name__)

VERSION = "1.0.0"

find_opts = [
    cfg.FloatOpt(
        "timeout",
        min=0.0,
        help="Give up after this many seconds. Waits forever when unset.",
    ),
]


class FileShareService(service.ServiceBase):
    """Runs a ServerLifecycle under an oslo.service launcher."""

    def __init__(self, lifecycle: ServerLifecycle):
        self._lifecycle = lifecycle

    def start(self):
        """Start sharing and wait until the listener is bound."""
        self._lifecycle.start()
        state = self._lifecycle.wait_for_change(ServerState.STARTING)
        if state == ServerState.RUNNING:
            LOG.info("Sharing on port %d", self._lifecycle.port)
        else:
            LOG.error("File server failed to start")

    def stop(self, graceful=True):
        """Stop sharing, once a pending start has settled."""
        self._lifecycle.wait_for_change(ServerState.STARTING)
        self._lifecycle.stop()
        self._lifecycle.wait_for(ServerState.STOPPED)

    def wait(self):
        """Wait for the server run to finish."""
        self._lifecycle.join()

    def reset(self):
        """Reset service state (no-op)."""
        return


def _setup(argv, prog: str) -> None:
    logging.register_options(CONF)
    CONF(
        argv,
        project="remote-iso",
        prog=prog,
        version=VERSION,
    )
    logging.setup(CONF, "remote_iso")


def share(argv=None):
    """Share the configured disc images until interrupted."""
    _setup(sys.argv[1:] if argv is None else argv, "remote-iso-share")
    launcher = service.ServiceLauncher(CONF)
    launcher.launch_service(FileShareService(ServerLifecycle()), workers=1)
    launcher.wait()


def find(argv=None) -> int:
    """Print the URL of a sharing server on the local network."""
    CONF.register_cli_opts(find_opts)
    _setup(sys.argv[1:] if argv is None else argv, "remote-iso-find")
    search = PeerSearch()
    url = search.wait(timeout=CONF.timeout)
    search.close()
    if not url:
        LOG.error("No server found")
        return 1
    print(url)
    return 0


if __name__ == "__main__":
    share()
