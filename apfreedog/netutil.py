"""Low-level network and system helpers used by the gateway.

Covers the ICMP keep-alive pinger, address validation, pid files,
socket helpers and CPU usage sampling.
"""

from __future__ import annotations

import errno
import logging
import os
import random
import select
import socket
import string
import struct
import time

logger = logging.getLogger(__name__)

VERSION = "3.11.1715"

MAX_BUF = 4096
HTTP_IP_ADDR_LEN = 17
HTTP_MAC_LEN = 18
MAC_LENGTH = 18
IP_LENGTH = 16
DEFAULT_MAC = "ff:ff:ff:ff:ff:ff"
UNSUPPORTED = "not support"

ICMP_ECHO = 8
# Size of the kernel's ``struct icmp``: an 8 byte header plus a 20 byte union.
ICMP_PACKET_SIZE = 28

_HEX_DIGITS = frozenset(string.hexdigits)


def icmp_checksum(data: bytes) -> int:
    """Return the ones' complement checksum of ``data`` as an integer.

    A folded sum of exactly 0xffff is returned unchanged rather than
    complemented, so the result is never zero.
    """
    if len(data) % 2:
        data += b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return total if total == 0xFFFF else (~total) & 0xFFFF


def build_echo_request(ident: int) -> bytes:
    """Build an ICMP echo request packet carrying identifier ``ident``."""
    if not 0 <= ident <= 0xFFFF:
        raise ValueError(f"ICMP identifier out of range: {ident}")
    header = struct.pack("!BBHHH", ICMP_ECHO, 0, 0, ident, 0)
    packet = header + bytes(ICMP_PACKET_SIZE - len(header))
    checksum = icmp_checksum(packet)
    return packet[:2] + struct.pack("!H", checksum) + packet[4:]


class IcmpPinger:
    """A raw ICMP socket used to send echo requests to hosts."""

    def __init__(self, sock=None):
        self._sock = sock

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """Create the non-blocking raw ICMP socket."""
        if self._sock is not None:
            return
        logger.info("Creating ICMP socket")
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)
        except OSError:
            logger.error("Cannot create ICMP raw socket.")
            raise
        try:
            sock.setblocking(False)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_DONTROUTE, 0)
        except OSError:
            logger.error("Cannot create ICMP raw socket.")
            sock.close()
            raise
        self._sock = sock

    def close(self) -> None:
        """Close the ICMP socket."""
        if self._sock is None:
            return
        logger.info("Closing ICMP socket")
        self._sock.close()
        self._sock = None

    def ping(self, host: str) -> None:
        """Send one echo request to the IPv4 address ``host``.

        Send failures are logged, not raised, since a lost ping is routine.
        """
        if self._sock is None:
            raise RuntimeError("ICMP socket is not open")
        try:
            socket.inet_aton(host)
        except OSError as exc:
            raise ValueError(f"not an IPv4 address: {host!r}") from exc

        packet = build_echo_request(random.getrandbits(16))
        self._set_rcvbuf(2000)
        try:
            self._sock.sendto(packet, (host, 0))
        except OSError as exc:
            logger.error("sendto(): %s", exc)
        self._set_rcvbuf(1)

    def _set_rcvbuf(self, size: int) -> None:
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size)
        except OSError as exc:
            logger.error("setsockopt(): %s", exc)

    def __enter__(self) -> "IcmpPinger":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def is_valid_ip(ip) -> bool:
    """Return True if ``ip`` is a dotted-quad IPv4 address."""
    if not ip:
        return False
    try:
        socket.inet_pton(socket.AF_INET, ip)
    except (OSError, ValueError, TypeError):
        return False
    return True


def is_valid_mac(mac) -> bool:
    """Return True if ``mac`` looks like a 17 character MAC address.

    Groups may be separated by ':' or '-'.
    """
    if not mac or len(mac) != 17:
        return False
    digits = 0
    separators = 0
    for ch in mac:
        if ch in _HEX_DIGITS:
            digits += 1
        elif ch in ":-":
            if digits == 0 or digits // 2 - 1 != separators:
                break
            separators += 1
        else:
            separators = -1
    return digits == 12 and separators in (5, 0)


def save_pid_file(path) -> None:
    """Write the current process id to ``path``; failures are logged."""
    if not path:
        return
    try:
        with open(path, "w") as handle:
            handle.write(f"{os.getpid()}\n")
    except OSError as exc:
        logger.error("writing pid file %s failed (%s)", path, exc)


def is_socket_valid(sock) -> bool:
    """Return True if ``sock`` has no pending error."""
    try:
        err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError as exc:
        logger.info("getsockopt(SO_ERROR): %s", exc)
        return False
    if err:
        logger.info("getsockopt(SO_ERROR): %s", os.strerror(err))
        return False
    return True


def set_nonblocking(sock) -> None:
    """Put a socket object or raw file descriptor into non-blocking mode."""
    if isinstance(sock, socket.socket):
        sock.setblocking(False)
    else:
        os.set_blocking(sock, False)


def connect_with_timeout(sock, address, timeout: float) -> None:
    """Connect ``sock`` to ``address``, waiting at most ``timeout`` seconds.

    On success the socket is left in blocking mode. Raises OSError (or
    TimeoutError) when the connection cannot be made.
    """
    set_nonblocking(sock)
    err = sock.connect_ex(address)
    if err == 0:
        sock.setblocking(True)
        return
    if err != errno.EINPROGRESS:
        raise OSError(err, os.strerror(err))
    _, writable, _ = select.select([], [sock], [], timeout)
    if not writable:
        raise TimeoutError(f"connect to {address!r} timed out")
    err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    if err:
        raise OSError(err, os.strerror(err))
    sock.setblocking(True)


def parse_cpu_fields(line: str) -> tuple:
    """Parse the ten tick counters of a /proc/stat cpu line.

    Raises ValueError when fewer than ten counters are present or all are zero.
    """
    tokens = line.split()
    if len(tokens) < 11:
        raise ValueError(f"expected 10 cpu counters in {line!r}")
    try:
        fields = tuple(int(token) for token in tokens[1:11])
    except ValueError as exc:
        raise ValueError(f"malformed cpu counters in {line!r}") from exc
    if not sum(fields):
        raise ValueError("cpu counters are all zero")
    return fields


def _read_cpu_fields(stat_path: str) -> tuple:
    with open(stat_path) as handle:
        return parse_cpu_fields(handle.readline())


def get_cpu_usage(stat_path: str = "/proc/stat", interval: float = 1.0) -> float:
    """Sample total CPU usage in percent over ``interval`` seconds.

    Returns 0.0 when the statistics cannot be read or no ticks elapsed.
    """
    try:
        first = _read_cpu_fields(stat_path)
    except (OSError, ValueError):
        return 0.0
    time.sleep(interval)
    try:
        second = _read_cpu_fields(stat_path)
    except (OSError, ValueError):
        return 0.0

    delta_total = sum(second) - sum(first)
    delta_idle = second[3] - first[3]
    if delta_total <= 0:
        return 0.0
    usage = (delta_total - delta_idle) / delta_total * 100
    logger.debug("Total CPU Usage: %3.2f%%", usage)
    return usage