"""Unix domain socket server that answers gateway control commands."""

from __future__ import annotations

import logging
import os
import socket
import socketserver
import threading
from typing import Callable, Iterable, Optional

from apfreedog.handlers import CommandEntry
from apfreedog.netutil import UNSUPPORTED

logger = logging.getLogger(__name__)

DEFAULT_WDCTL_SOCK = "/tmp/wdctl.sock"
# sun_path holds 108 bytes including the terminating NUL.
MAX_SOCKET_PATH = 107
_RECV_SIZE = 8192


def prepare_socket_path(path: Optional[str]) -> str:
    """Check ``path`` fits a Unix socket address and remove any stale file.

    Raises ValueError when the path is missing or too long.
    """
    if not path or len(os.fsencode(path)) > MAX_SOCKET_PATH:
        logger.error("WDCTL socket name too long")
        raise ValueError(f"unusable control socket path: {path!r}")
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    return path


class _RequestHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        control: ControlServer = self.server.control  # type: ignore[attr-defined]
        while True:
            try:
                data = self.request.recv(_RECV_SIZE)
            except OSError:
                return
            if not data:
                return
            request = data.decode("utf-8", errors="replace").split("\0", 1)[0]
            try:
                reply = control.dispatch(request)
            except Exception:
                logger.exception("control command %r failed", request)
                return
            if reply:
                try:
                    self.request.sendall(reply.encode())
                except OSError:
                    return


class _UnixServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True

    def __init__(self, path: str, control: "ControlServer"):
        self.control = control
        super().__init__(path, _RequestHandler)


class ControlServer:
    """Dispatches control requests to registered command handlers."""

    def __init__(self, commands: Iterable[CommandEntry] = ()):
        self._commands: list = list(commands)
        self._server: Optional[_UnixServer] = None
        self._lock = threading.Lock()
        self.ready = threading.Event()

    @property
    def commands(self) -> list:
        return list(self._commands)

    def register(self, name: str, handler: Callable[..., str], takes_param: bool = False) -> None:
        """Add a command; commands are matched in registration order."""
        if not name:
            raise ValueError("command name must not be empty")
        self._commands.append(CommandEntry(name, handler, bool(takes_param)))

    def dispatch(self, request: str) -> str:
        """Return the reply to ``request``.

        The first command whose name prefixes the request handles it; a
        parameter follows the name after one separating character.
        """
        for entry in self._commands:
            if request.startswith(entry.name):
                if entry.takes_param:
                    return entry.handler(request[len(entry.name) + 1:])
                return entry.handler()
        return UNSUPPORTED

    def serve(self, path: str = DEFAULT_WDCTL_SOCK) -> None:
        """Listen on the Unix socket ``path`` until shutdown() is called."""
        path = prepare_socket_path(path)
        server = _UnixServer(path, self)
        with self._lock:
            self._server = server
        self.ready.set()
        try:
            server.serve_forever(poll_interval=0.1)
        finally:
            server.server_close()
            with self._lock:
                self._server = None
            self.ready.clear()

    def shutdown(self) -> None:
        """Stop a running serve() loop; does nothing when not serving."""
        with self._lock:
            server = self._server
        if server is not None:
            server.shutdown()

    def __repr__(self) -> str:
        return f"ControlServer(commands={[c.name for c in self._commands]!r})"


def _socket_family_supported() -> bool:
    return hasattr(socket, "AF_UNIX")