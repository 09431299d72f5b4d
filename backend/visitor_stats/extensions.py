from __future__ import annotations

import logging
from typing import Optional

from flask import request
from flask_cors import CORS

from visitor_stats.config import Settings
from visitor_stats.services.address_resolver import RequestMetadata


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

cors = CORS()


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger("visitor_stats")
    root.setLevel(getattr(logging, settings.log_level, logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def _socket_peer_address() -> Optional[str]:
    sock = request.environ.get("werkzeug.socket")
    if sock is None:
        return None
    try:
        peer = sock.getpeername()
    except OSError:
        return None
    if isinstance(peer, tuple) and peer:
        return str(peer[0])
    return None


def request_metadata() -> RequestMetadata:
    """Snapshot the caller-identifying parts of the current Flask request."""
    return RequestMetadata(
        headers={key: value for key, value in request.headers.items()},
        peer_address=request.remote_addr,
        socket_address=_socket_peer_address(),
    )
