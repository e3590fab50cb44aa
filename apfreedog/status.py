"""Gateway status reporting: connectivity hints and human/JSON reports."""

from __future__ import annotations

import enum
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from apfreedog.netutil import VERSION

logger = logging.getLogger(__name__)

IPLIST_DOMAIN = "iplist"
DEFAULT_CHECK_INTERVAL = 60


class ConnectivityTracker:
    """Guesses whether the internet and the auth server are reachable.

    The guess is based on the times of the last successful and failed
    online actions, compared against the check interval.
    """

    def __init__(
        self,
        check_interval: int = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.check_interval = check_interval
        self._clock = clock
        self.last_online_time = 0
        self.last_offline_time = 0
        self.last_auth_online_time = 0
        self.last_auth_offline_time = 0

    def _now(self) -> int:
        return int(self._clock())

    def _report(self, label: str, before: bool, after: bool) -> None:
        if before != after:
            logger.info("%s status became %s", label, "ON" if after else "OFF")

    def mark_online(self) -> None:
        """Record that an action using the WAN succeeded."""
        before = self.is_online()
        self.last_online_time = self._now()
        self._report("ONLINE", before, self.is_online())

    def mark_offline_time(self) -> None:
        """Record a WAN failure without touching the auth server state."""
        before = self.is_online()
        self.last_offline_time = self._now()
        self._report("ONLINE", before, self.is_online())

    def mark_offline(self) -> None:
        """Record that an action using the WAN failed; the auth server is then offline too."""
        self.mark_offline_time()
        self.mark_auth_offline()

    def is_online(self) -> bool:
        if self.last_online_time == 0:
            return False
        elapsed = self.last_offline_time - self.last_online_time
        return elapsed < self.check_interval * 2 - 10

    def mark_auth_online(self) -> None:
        """Record that the auth server answered; that also means we are online."""
        before = self.is_auth_online()
        self.last_auth_online_time = self._now()
        self._report("AUTH_ONLINE", before, self.is_auth_online())
        self.mark_online()

    def mark_auth_offline(self) -> None:
        """Record that an auth server action failed."""
        before = self.is_auth_online()
        self.last_auth_offline_time = self._now()
        self._report("AUTH_ONLINE", before, self.is_auth_online())

    def is_auth_online(self) -> bool:
        if not self.is_online():
            return False
        if self.last_auth_online_time == 0:
            return False
        elapsed = self.last_auth_offline_time - self.last_auth_online_time
        return elapsed < self.check_interval * 2


class MacListKind(enum.Enum):
    """The MAC lists kept in the configuration."""

    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"
    TRUSTED_LOCAL = "trusted_local"
    ROAM = "roam"


_MACLIST_HEADERS = {
    MacListKind.TRUSTED: "\nTrusted mac list:\n",
    MacListKind.UNTRUSTED: "\nUntrusted mac list:\n",
    MacListKind.TRUSTED_LOCAL: "\nTrusted local mac list:\n",
    MacListKind.ROAM: "\nRoam mac list:\n",
}


@dataclass
class Client:
    """A client connected through the gateway."""

    ip: str
    mac: str
    token: str = ""
    name: Optional[str] = None
    first_login: int = 0
    incoming: int = 0
    outgoing: int = 0
    is_online: bool = False


@dataclass
class OfflineClient:
    """A client seen by the gateway but not logged in."""

    ip: str
    mac: str
    last_login: int = 0
    hit_counts: int = 0
    client_type: int = 0
    temp_passed: int = 0


@dataclass
class TrustedDomain:
    """A trusted domain and the IPv4 addresses it resolved to."""

    domain: str
    ips: list = field(default_factory=list)


@dataclass
class AuthServer:
    """An authentication server as shown in the status report."""

    hostname: str
    last_ip: str = ""


@dataclass
class SysInfo:
    """System figures included in the JSON status."""

    sys_uptime: int = 0
    sys_memfree: int = 0
    nf_conntrack_count: int = 0
    cpu_usage: float = 0.0
    sys_load: float = 0.0


@dataclass
class GatewayState:
    """Everything the status reports are built from."""

    started_time: float = 0.0
    restart_orig_pid: int = 0
    served_this_session: int = 0
    clients: list = field(default_factory=list)
    offline_clients: list = field(default_factory=list)
    maclists: dict = field(default_factory=dict)
    trusted_domains: list = field(default_factory=list)
    pan_domains: list = field(default_factory=list)
    auth_servers: list = field(default_factory=list)
    tracker: ConnectivityTracker = field(default_factory=ConnectivityTracker)
    board_type: Optional[str] = None
    board_name: Optional[str] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def maclist(self, kind: MacListKind) -> list:
        return self.maclists.get(MacListKind(kind), [])


def format_uptime(seconds: int) -> tuple:
    """Split a number of seconds into (days, hours, minutes, seconds)."""
    seconds = int(seconds)
    if seconds < 0:
        raise ValueError(f"negative uptime: {seconds}")
    days, rest = divmod(seconds, 24 * 60 * 60)
    hours, rest = divmod(rest, 60 * 60)
    minutes, secs = divmod(rest, 60)
    return days, hours, minutes, secs


def _uptime(state: GatewayState, now: Optional[float]) -> tuple:
    if now is None:
        now = time.time()
    return format_uptime(max(0, int(now - state.started_time)))


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def status_text(state: GatewayState, now: Optional[float] = None) -> str:
    """Return the human-readable gateway status paragraph."""
    days, hours, minutes, seconds = _uptime(state, now)
    parts = [
        "WiFiDog status\n\n",
        f"Version: {VERSION}\n",
        f"Uptime: {days}d {hours}h {minutes}m {seconds}s\n",
        "Has been restarted: ",
    ]
    if state.restart_orig_pid:
        parts.append(f"yes (from PID {state.restart_orig_pid})\n")
    else:
        parts.append("no\n")
    parts.append(f"Internet Connectivity: {_yes_no(state.tracker.is_online())}\n")
    parts.append(f"Auth server reachable: {_yes_no(state.tracker.is_auth_online())}\n")
    parts.append(f"Clients served this session: {state.served_this_session}\n\n")

    with state.lock:
        clients = list(state.clients)
        offline = list(state.offline_clients)
        trusted_macs = list(state.maclist(MacListKind.TRUSTED))
        auth_servers = list(state.auth_servers)

    parts.append(f"{len(clients)} clients connected.\n")
    active = 0
    for number, client in enumerate(clients, start=1):
        parts.append(f"\nClient {number} status [{int(client.is_online)}]\n")
        parts.append(f"  IP: {client.ip} MAC: {client.mac}\n")
        parts.append(f"  Token: {client.token}\n")
        parts.append(f"  First Login: {int(client.first_login)}\n")
        parts.append(f"  Name: {client.name if client.name is not None else 'null'}\n")
        parts.append(f"  Downloaded: {client.incoming}\n  Uploaded: {client.outgoing}\n")
        if client.is_online:
            active += 1
    parts.append(f"{len(clients)} client  {active} active .\n")

    parts.append(f"{len(offline)} clients unconnected.\n")
    for oc in offline:
        parts.append(
            f"  IP: {oc.ip} MAC: {oc.mac} Last Login: {int(oc.last_login)} "
            f"Hit Counts: {oc.hit_counts} Client Type: {oc.client_type} "
            f"Temp Passed: {oc.temp_passed}\n"
        )

    if trusted_macs:
        parts.append("\nTrusted MAC addresses:\n")
        parts.extend(f"  {mac}\n" for mac in trusted_macs)

    parts.append("\nAuthentication servers:\n")
    parts.extend(f"  Host: {srv.hostname} ({srv.last_ip})\n" for srv in auth_servers)
    return "".join(parts)


def mqtt_status_text(state: GatewayState, sys_info: SysInfo, now: Optional[float] = None) -> str:
    """Return the gateway status as a JSON document."""
    days, hours, minutes, seconds = _uptime(state, now)
    status = {
        "sys_uptime": sys_info.sys_uptime,
        "sys_memfree": sys_info.sys_memfree,
        "nf_conntrack_count": sys_info.nf_conntrack_count,
        "cpu_usage": float(sys_info.cpu_usage),
        "sys_load": float(sys_info.sys_load),
        "boad_type": state.board_type if state.board_type else "null",
        "boad_name": state.board_name if state.board_name else "null",
        "wifidog_version": VERSION,
        "wifidog_uptime": f"{days}D {hours}H {minutes}M {seconds}S",
        "auth_server": int(state.tracker.is_auth_online()),
    }
    with state.lock:
        clients = list(state.clients)
    status["online_client_count"] = len(clients)
    if clients:
        status["clients"] = [
            {
                "status": int(c.is_online),
                "ip": c.ip,
                "mac": c.mac,
                "token": c.token,
                "name": c.name if c.name is not None else "null",
                "first_login": int(c.first_login),
                "downloaded": c.incoming,
                "uploaded": c.outgoing,
            }
            for c in clients
        ]
    status["active_client_count"] = sum(1 for c in clients if c.is_online)
    return json.dumps(status)


def serialize_maclist(macs: Iterable[str]) -> Optional[str]:
    """Join MAC addresses with commas; None for an empty list."""
    macs = list(macs)
    return ",".join(macs) if macs else None


def _find_iplist(domains: Sequence[TrustedDomain]) -> Optional[TrustedDomain]:
    return next((d for d in domains if d.domain == IPLIST_DOMAIN), None)


def serialize_trusted_domains(domains: Sequence[TrustedDomain]) -> Optional[str]:
    """Join trusted domain names with commas, skipping the ip list entry."""
    if not domains:
        return None
    return ",".join(d.domain for d in domains if d.domain != IPLIST_DOMAIN)


def serialize_iplist(domains: Sequence[TrustedDomain]) -> Optional[str]:
    """Join the addresses of the trusted ip list; None when there is no ip list."""
    iplist = _find_iplist(domains)
    if iplist is None:
        logger.debug("no iplist")
        return None
    return ",".join(iplist.ips)


def serialize_pan_domains(domains: Sequence[TrustedDomain]) -> Optional[str]:
    """Join trusted pan-domain names with commas; None when there are none."""
    names = [d.domain for d in domains]
    return ",".join(names) if names else None


def mqtt_pan_domains_text(domains: Sequence[TrustedDomain]) -> Optional[str]:
    """Pan-domain list as sent over MQTT; None when empty."""
    return serialize_pan_domains(domains)


def trusted_domains_text(domains: Sequence[TrustedDomain]) -> str:
    """Human-readable listing of trusted domains and their addresses."""
    parts = ["\nTrusted domains and its ip:\n"]
    for d in domains:
        parts.append(f"\nDomain: {d.domain} \n")
        parts.extend(f"  {ip} \n" for ip in d.ips)
    return "".join(parts)


def _domain_entry(domain: TrustedDomain) -> dict:
    return {domain.domain: ",".join(domain.ips) if domain.ips else "NULL"}


def mqtt_trusted_domains_text(domains: Sequence[TrustedDomain]) -> Optional[str]:
    """JSON array mapping each trusted domain to its comma-joined addresses."""
    if not domains:
        return None
    return json.dumps([_domain_entry(d) for d in domains])


def mqtt_trusted_iplist_text(domains: Sequence[TrustedDomain]) -> Optional[str]:
    """JSON array holding the trusted ip list entry; None when absent."""
    if not domains:
        return None
    iplist = _find_iplist(domains)
    if iplist is None:
        return None
    return json.dumps([_domain_entry(iplist)])


def maclist_text(kind: MacListKind, macs: Iterable[str]) -> str:
    """Human-readable MAC list, four addresses per line."""
    header = _MACLIST_HEADERS[MacListKind(kind)]
    parts = [header]
    for count, mac in enumerate(macs, start=1):
        parts.append(f" {mac} ")
        if count % 4 == 0:
            parts.append("\n")
    return "".join(parts)