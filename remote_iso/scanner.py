# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Discovery of a sharing server on the local network."""

import socket
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

from oslo_log import log as logging

from remote_iso.conf import CONF
from remote_iso.directory import DirectoryClient

LOG = logging.getLogger(__name__)


class PeerScanner:
    """Find the first reachable server among the directory's announcements."""

    def __init__(
        self, directory: Optional[DirectoryClient] = None, timeout: Optional[float] = None
    ):
        self._directory = directory or DirectoryClient()
        self._timeout = CONF.remote_iso.probe_timeout if timeout is None else timeout

    def is_reachable(self, host: str, port: int) -> bool:
        """Check whether a TCP connection to ``host:port`` can be opened."""
        try:
            conn = socket.create_connection((host, port), timeout=self._timeout)
        except (OSError, ValueError) as exc:
            LOG.debug("%s:%d is not reachable: %s", host, port, exc)
            return False
        conn.close()
        return True

    def find_server(self) -> str:
        """Return the URL of the first reachable peer, or an empty string.

        Peers are probed in the order the directory returned them.
        """
        for peer in self._directory.list_peers():
            if self.is_reachable(peer.ip, peer.port):
                LOG.info("Found server at %s", peer.url)
                return peer.url
        LOG.debug("No reachable server found")
        return ""


class ScanTask:
    """A single scan running on its own thread.

    The outcome is published through :attr:`future`; it is always resolved,
    with an empty string when nothing was found or the scan failed.
    """

    def __init__(self, scanner: PeerScanner):
        self._scanner = scanner
        self.future: Future = Future()
        self._thread = threading.Thread(target=self._run, name="remote-iso-scan", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        if not self.future.set_running_or_notify_cancel():
            return
        try:
            url = self._scanner.find_server()
        except Exception:
            LOG.exception("Scan failed")
            url = ""
        self.future.set_result(url)

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> str:
        return self.future.result(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the scan to finish, returns False on timeout."""
        try:
            self.future.result(timeout)
        except FutureTimeoutError:
            return False
        self._thread.join()
        return True


class PeerSearch:
    """Scan repeatedly until a server is found.

    Meant to be polled from the caller's own loop. After a scan comes back
    empty the next one starts ``retry_interval`` seconds later.
    """

    def __init__(
        self,
        scanner: Optional[PeerScanner] = None,
        retry_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._scanner = scanner or PeerScanner()
        if retry_interval is None:
            retry_interval = CONF.remote_iso.scan_retry_interval
        self._retry_interval = retry_interval
        self._clock = clock
        self._task: Optional[ScanTask] = None
        self._next_retry: Optional[float] = None
        self.url = ""

    @property
    def scanning(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn a scan unless one is already pending."""
        if self.scanning:
            return
        self._next_retry = None
        self._task = ScanTask(self._scanner)

    def poll(self) -> str:
        """Advance the search without blocking, returns the URL once found."""
        if self.url:
            return self.url
        if self._task is None:
            self.start()
            return ""
        if not self._task.done():
            return ""

        url = self._task.result()
        if url:
            self.url = url
            return url
        now = self._clock()
        if self._next_retry is None:
            self._next_retry = now + self._retry_interval
            LOG.debug("No server found, retrying in %.0f seconds", self._retry_interval)
        elif now >= self._next_retry:
            self.start()
        return ""

    def wait(self, timeout: Optional[float] = None, interval: float = 0.5) -> str:
        """Poll until a server is found or ``timeout`` expires."""
        deadline = None if timeout is None else self._clock() + timeout
        while not self.poll():
            if deadline is not None and self._clock() >= deadline:
                break
            if self.scanning:
                self._task.wait(interval)
            else:
                time.sleep(interval)
        return self.url

    def close(self, timeout: Optional[float] = None) -> bool:
        """Wait for the pending scan, if any, to complete."""
        if self._task is None:
            return True
        return self._task.wait(timeout)
