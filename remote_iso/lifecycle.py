# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Background execution of the file server.

A :class:`ServerLifecycle` owns one server run at a time. The run binds the
listener, announces it to the rendezvous directory and then alternates
between handling requests for one slice and re-announcing itself when the
register interval has elapsed. Callers drive it through ``start``/``stop``
and observe it through ``state`` and the ``wait_*`` helpers; this is the
only coordination between the caller and the background thread.
"""

import threading
import time
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Union

from oslo_log import log as logging

from remote_iso.conf import CONF
from remote_iso.directory import DirectoryClient
from remote_iso.fileserver import RangeFileServer, ServedFile, build_served_files

LOG = logging.getLogger(__name__)


class ServerState(str, Enum):
    """States of a server run."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class Outcome(str, Enum):
    """Result of a start or stop request."""

    DONE = "done"
    SKIPPED = "skipped"


PathSource = Union[Iterable[str], Callable[[], Iterable[str]]]


class ServerLifecycle:
    """Start, stop and observe the background file server."""

    def __init__(
        self,
        paths: Optional[PathSource] = None,
        directory: Optional[DirectoryClient] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        register_interval: Optional[float] = None,
        service_slice: Optional[float] = None,
    ):
        self._paths = paths
        self._directory = directory or DirectoryClient()
        self._host = host or CONF.remote_iso.host
        self._preferred_port = port
        self._register_interval = register_interval or CONF.remote_iso.register_interval
        self._service_slice = service_slice or CONF.remote_iso.service_slice

        self._cond = threading.Condition(threading.RLock())
        self._state = ServerState.STOPPED
        self._port: Optional[int] = None
        self._thread: Optional[threading.Thread] = None
        self._served_files: Dict[str, ServedFile] = {}

    @property
    def state(self) -> ServerState:
        with self._cond:
            return self._state

    @property
    def port(self) -> Optional[int]:
        """Port bound by the last run, None if no run got that far."""
        with self._cond:
            return self._port

    @property
    def served_files(self) -> Dict[str, ServedFile]:
        with self._cond:
            return dict(self._served_files)

    def _set_state(self, state: ServerState) -> None:
        with self._cond:
            LOG.debug("File server %s -> %s", self._state.value, state.value)
            self._state = state
            self._cond.notify_all()

    def _candidate_paths(self) -> Iterable[str]:
        if self._paths is None:
            return CONF.remote_iso.recent_isos
        if callable(self._paths):
            return self._paths()
        return self._paths

    def start(self) -> Outcome:
        """Start a server run in the background, if none is active."""
        with self._cond:
            if self._state != ServerState.STOPPED:
                return Outcome.SKIPPED
            self._set_state(ServerState.STARTING)
            self._thread = threading.Thread(
                target=self._run, name="remote-iso-server", daemon=True
            )
            self._thread.start()
        return Outcome.DONE

    def stop(self) -> Outcome:
        """Ask the running server to stop.

        Returns immediately; wait for ``ServerState.STOPPED`` to confirm.
        """
        with self._cond:
            if self._state != ServerState.RUNNING:
                return Outcome.SKIPPED
            self._set_state(ServerState.STOPPING)
        return Outcome.DONE

    def wait_for_change(
        self, previous: ServerState, timeout: Optional[float] = None
    ) -> ServerState:
        """Block until the state differs from ``previous`` and return it."""
        with self._cond:
            self._cond.wait_for(lambda: self._state != previous, timeout)
            return self._state

    def wait_for(self, state: ServerState, timeout: Optional[float] = None) -> bool:
        """Block until ``state`` is reached, returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._state == state, timeout)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background thread of the last run to exit."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        if thread.is_alive():
            return False
        with self._cond:
            if self._thread is thread:
                self._thread = None
        return True

    def _run(self) -> None:
        server = None
        try:
            files = build_served_files(self._candidate_paths())
            port = self._preferred_port
            if port is None:
                port = CONF.remote_iso.port
            server = RangeFileServer(files, self._host, port)
            try:
                bound = server.listen()
            except OSError as exc:
                LOG.error("File server could not listen on any port: %s", exc)
                return

            with self._cond:
                self._served_files = files
                self._port = bound
                CONF.set_override("port", bound, group="remote_iso")
                self._set_state(ServerState.RUNNING)
            LOG.info("Sharing %d file(s) on port %d", len(files), bound)

            self._serve(server, bound)
        except Exception:
            LOG.exception("File server run failed")
        finally:
            if server is not None:
                server.close()
            self._set_state(ServerState.STOPPED)

    def _serve(self, server: RangeFileServer, port: int) -> None:
        self._directory.register(port)
        last_register = time.monotonic()
        while self.state == ServerState.RUNNING:
            server.run_slice(self._service_slice)

            if time.monotonic() - last_register >= self._register_interval:
                self._directory.register(port)
                last_register = time.monotonic()
