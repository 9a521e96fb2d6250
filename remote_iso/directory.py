# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Client for the rendezvous directory.

Devices on the same network cannot find each other's address without help,
so a server announces its local address to a well known host and a scanning
device asks that host for recent announcements. Both calls are best-effort:
failures are logged and degrade to a no-op or an empty peer list.
"""

import socket
from typing import List, Optional

import requests
from oslo_log import log as logging
from pydantic import ValidationError

from remote_iso.conf import CONF
from remote_iso.schemas import PeerRecord

LOG = logging.getLogger(__name__)

UPDATE_PATH = "/match/update"
LIST_PATH = "/match/list"


class DirectoryClient:
    """Thin HTTP client against the rendezvous host."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.host = host or CONF.remote_iso.directory_host
        self.port = port or CONF.remote_iso.directory_port
        self.timeout = CONF.remote_iso.request_timeout if timeout is None else timeout

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def _resolve(self) -> Optional[tuple]:
        """Return the first TCP address of the rendezvous host, None if unresolvable."""
        try:
            infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as exc:
            LOG.debug("Cannot resolve %s: %s", self.host, exc)
            return None
        if not infos:
            return None
        family, _, _, _, sockaddr = infos[0]
        return family, sockaddr

    @staticmethod
    def local_ip(family: int, sockaddr: tuple) -> str:
        """Return the local address the OS would use to reach ``sockaddr``.

        Connecting a UDP socket only selects a route, no packet is sent.
        """
        with socket.socket(family, socket.SOCK_DGRAM) as s:
            s.connect(sockaddr)
            return s.getsockname()[0]

    def register(self, port: int) -> bool:
        """Announce this machine's local address and ``port``.

        :return: whether the announcement reached the directory.
        """
        resolved = self._resolve()
        if resolved is None:
            return False
        try:
            ip = self.local_ip(*resolved)
            response = requests.get(
                self.base_url + UPDATE_PATH,
                params={"local": ip, "port": port},
                timeout=self.timeout,
            )
            response.close()
        except (OSError, requests.RequestException) as exc:
            LOG.warning("Failed to register with %s: %s", self.host, exc)
            return False
        LOG.info("Registered %s:%d with %s", ip, port, self.host)
        return True

    def list_peers(self) -> List[PeerRecord]:
        """Return recently announced servers, in the directory's order."""
        if self._resolve() is None:
            return []
        try:
            response = requests.get(self.base_url + LIST_PATH, timeout=self.timeout)
        except requests.RequestException as exc:
            LOG.warning("Failed to list peers from %s: %s", self.host, exc)
            return []
        if response.status_code != 200:
            LOG.debug("Directory %s answered %d", self.host, response.status_code)
            return []
        try:
            entries = response.json()
        except ValueError as exc:
            LOG.debug("Invalid peer list from %s: %s", self.host, exc)
            return []
        if not isinstance(entries, list):
            LOG.debug("Unexpected peer list from %s: %r", self.host, entries)
            return []

        peers = []
        for entry in entries:
            try:
                peers.append(PeerRecord.model_validate(entry))
            except ValidationError as exc:
                LOG.debug("Skipping peer entry %r: %s", entry, exc)
        return peers
