# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Configuration options for sharing and discovering disc images."""

import os

from oslo_config import cfg

remote_iso_opts = [
    cfg.StrOpt(
        "host",
        default=os.environ.get("REMOTE_ISO_HOST", "0.0.0.0"),
        help="Listen address for the file server",
    ),
    cfg.IntOpt(
        "port",
        default=int(os.environ.get("REMOTE_ISO_PORT", "0")),
        min=0,
        max=65535,
        help="Preferred TCP listen port for the file server. 0 picks any free "
        "port. Updated with the port actually bound.",
    ),
    cfg.ListOpt(
        "recent_isos",
        default=[],
        help="Disc image files offered for sharing",
    ),
    cfg.StrOpt(
        "directory_host",
        default="report.ppsspp.org",
        help="Rendezvous host that relays server addresses to scanning devices",
    ),
    cfg.PortOpt(
        "directory_port",
        default=80,
        help="Rendezvous host port",
    ),
    cfg.FloatOpt(
        "register_interval",
        default=540.0,
        min=1.0,
        help="Seconds between registrations with the rendezvous host",
    ),
    cfg.FloatOpt(
        "service_slice",
        default=5.0,
        min=0.01,
        help="Seconds the server handles requests before checking for a stop request",
    ),
    cfg.FloatOpt(
        "request_timeout",
        default=10.0,
        min=0.0,
        help="Timeout for requests to the rendezvous host",
    ),
    cfg.FloatOpt(
        "probe_timeout",
        default=5.0,
        min=0.0,
        help="Timeout for connecting to a candidate server",
    ),
    cfg.FloatOpt(
        "scan_retry_interval",
        default=30.0,
        min=0.0,
        help="Seconds to wait before scanning again when no server was found",
    ),
]

CONF = cfg.CONF
CONF.register_opts(remote_iso_opts, group="remote_iso")


def list_opts():
    """Return the options for oslo-config-generator."""
    return [("remote_iso", remote_iso_opts)]
