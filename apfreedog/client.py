"""Helpers for talking to the authentication server on behalf of clients."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote, urlsplit

logger = logging.getLogger(__name__)

WD_CONNECT_TIMEOUT = 2
USER_AGENT = "ApFree WiFiDog"


@dataclass(frozen=True)
class GatewayInfo:
    """How the gateway identifies itself to the auth server."""

    address: str
    port: int
    gw_id: str


def original_url(uri: str, host: Optional[str] = None) -> str:
    """Return the client's original URL, fully percent-encoded.

    A relative ``uri`` is made absolute with ``host``. Raises ValueError
    when ``uri`` is relative and no host is known.
    """
    if not uri:
        raise ValueError("empty request URI")
    if urlsplit(uri).netloc:
        return quote(uri, safe="")
    if not host:
        raise ValueError(f"no host for relative URI {uri!r}")
    return quote(f"http://{host}{uri}", safe="")


def auth_server_endpoint(auth_server) -> tuple:
    """Return ``(scheme, hostname, port)`` used to reach ``auth_server``.

    ``auth_server`` must provide ``hostname``, ``use_ssl``, ``http_port``
    and ``ssl_port`` attributes.
    """
    if auth_server.use_ssl:
        return "https", auth_server.hostname, auth_server.ssl_port
    return "http", auth_server.hostname, auth_server.http_port


def redirect_url_to_auth(
    auth_server,
    gateway: GatewayInfo,
    orig_url: str,
    mac: str,
    remote_host: str,
    channel_path: Optional[str] = None,
    ssid: Optional[str] = None,
) -> str:
    """Build the login URL a client is redirected to.

    ``auth_server`` must also provide ``path`` and
    ``login_script_path_fragment``; ``orig_url`` is already encoded.
    """
    scheme, hostname, port = auth_server_endpoint(auth_server)
    return (
        f"{scheme}://{hostname}:{port}"
        f"{auth_server.path}{auth_server.login_script_path_fragment}"
        f"gw_address={gateway.address}&gw_port={gateway.port}&gw_id={gateway.gw_id}"
        f"&channel_path={channel_path or 'null'}&ssid={ssid or 'null'}"
        f"&ip={remote_host}&mac={mac}&url={orig_url}"
    )


def request_headers(host: str) -> list:
    """Headers sent with every request to the auth server, in order."""
    return [
        ("Host", host),
        ("Content-Type", "text/html"),
        ("Cache-Control", "no-store, must-revalidate"),
        ("Expires", "0"),
        ("Pragma", "no-cache"),
        ("Connection", "close"),
        ("User-Agent", USER_AGENT),
    ]


def run_periodic(
    callback: Callable[[], object],
    interval: float,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """Call ``callback`` now and then every ``interval`` seconds.

    Runs until ``stop_event`` is set; returns how many calls were made.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive: {interval}")
    if stop_event is None:
        stop_event = threading.Event()
    calls = 0
    callback()
    calls += 1
    while not stop_event.wait(interval):
        callback()
        calls += 1
    return calls