"""Command handlers behind the control socket and their replies."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from apfreedog.netutil import is_valid_ip, is_valid_mac
from apfreedog.status import (
    GatewayState,
    MacListKind,
    maclist_text,
    serialize_iplist,
    serialize_maclist,
    serialize_pan_domains,
    serialize_trusted_domains,
    status_text,
    trusted_domains_text,
)

logger = logging.getLogger(__name__)

YES = "Yes"
NO = "No"
DNSMASQ_RESTART = "CMD[/etc/init.d/dnsmasq restart]"


class ControlBackend(Protocol):
    """The gateway operations the control commands act upon."""

    state: GatewayState

    def stop(self) -> None:
        """Stop the gateway."""

    def logout_client(self, client) -> None:
        """Log a connected client out."""

    def add_trusted_pdomains(self, arg: str) -> None:
        """Add comma separated pan-domains and apply them."""

    def del_trusted_pdomains(self, arg: str) -> None:
        """Remove comma separated pan-domains and apply the change."""

    def clear_trusted_pdomains(self) -> None:
        """Remove all pan-domains."""

    def add_trusted_iplist(self, arg: str) -> None:
        """Add comma separated trusted addresses."""

    def del_trusted_iplist(self, arg: str) -> None:
        """Remove comma separated trusted addresses."""

    def clear_trusted_iplist(self) -> None:
        """Remove all trusted addresses."""

    def add_trusted_domains(self, arg: str) -> None:
        """Add comma separated trusted domains and resolve them."""

    def del_trusted_domains(self, arg: str) -> None:
        """Remove comma separated trusted domains."""

    def clear_trusted_domains(self) -> None:
        """Remove all trusted domains."""

    def reparse_trusted_domains(self) -> None:
        """Resolve the trusted domains again."""

    def add_domain_ip(self, arg: str) -> None:
        """Add a domain and address pair to the trusted domains."""

    def add_roam_maclist(self, arg: str) -> None:
        """Add MAC addresses to the roam list."""

    def clear_roam_maclist(self) -> None:
        """Remove all roam MAC addresses."""

    def add_trusted_maclist(self, arg: str) -> None:
        """Add trusted MAC addresses."""

    def del_trusted_maclist(self, arg: str) -> None:
        """Remove trusted MAC addresses."""

    def clear_trusted_maclist(self) -> None:
        """Remove all trusted MAC addresses."""

    def add_trusted_local_maclist(self, arg: str) -> None:
        """Add trusted local MAC addresses."""

    def del_trusted_local_maclist(self, arg: str) -> None:
        """Remove trusted local MAC addresses."""

    def clear_trusted_local_maclist(self) -> None:
        """Remove all trusted local MAC addresses."""

    def add_untrusted_maclist(self, arg: str) -> None:
        """Add blacklisted MAC addresses."""

    def del_untrusted_maclist(self, arg: str) -> None:
        """Remove blacklisted MAC addresses."""

    def clear_untrusted_maclist(self) -> None:
        """Remove all blacklisted MAC addresses."""

    def user_cfg_save(self, values: dict) -> None:
        """Persist the rules; a None value means the option is removed."""

    def is_trusted_mac(self, mac: str) -> bool:
        """Return True if ``mac`` is on the trusted list."""

    def roam_request(self, ip: str, mac: str) -> None:
        """Ask the auth server to admit a roaming client."""


@dataclass(frozen=True)
class CommandEntry:
    """A control command name and the handler that produces its reply."""

    name: str
    handler: Callable[..., str]
    takes_param: bool = False


def parse_online_client(args: str, is_trusted: Callable[[str], bool]) -> Optional[tuple]:
    """Parse an add_online_client request into ``(ip, mac, name)``.

    Returns None unless the JSON object carries a valid ip, a valid and
    trusted mac, and a name.
    """
    try:
        info = json.loads(args)
    except (TypeError, ValueError):
        return None
    if not isinstance(info, dict) or not all(key in info for key in ("mac", "ip", "name")):
        return None
    mac, ip, name = info["mac"], info["ip"], info["name"]
    if not all(isinstance(value, str) for value in (mac, ip)):
        return None
    if not is_valid_mac(mac) or not is_valid_ip(ip) or not is_trusted(mac):
        return None
    return ip, mac, name if isinstance(name, str) else json.dumps(name)


def user_cfg_values(state: GatewayState) -> dict:
    """Return the saved configuration options; None marks an option to delete."""
    with state.lock:
        return {
            "trusted_pan_domains": serialize_pan_domains(state.pan_domains),
            "trusted_domains": serialize_trusted_domains(state.trusted_domains),
            "trusted_iplist": serialize_iplist(state.trusted_domains),
            "trusted_maclist": serialize_maclist(state.maclist(MacListKind.TRUSTED)),
            "trusted_local_maclist": serialize_maclist(state.maclist(MacListKind.TRUSTED_LOCAL)),
            "untrusted_maclist": serialize_maclist(state.maclist(MacListKind.UNTRUSTED)),
        }


def _find_client(state: GatewayState, key: str):
    with state.lock:
        for attr in ("ip", "mac"):
            for client in state.clients:
                if getattr(client, attr) == key:
                    return client
    return None


def build_command_table(backend: ControlBackend) -> list:
    """Return the control commands, in matching order, bound to ``backend``."""
    state = backend.state

    def answer(action: Callable[..., None], reply: str = YES) -> Callable[..., str]:
        def run(*args) -> str:
            action(*args)
            return reply

        return run

    def show(text: Callable[[], Optional[str]]) -> Callable[[], str]:
        def run() -> str:
            return text() or NO

        return run

    def show_maclist(kind: MacListKind) -> Callable[[], str]:
        def text() -> str:
            with state.lock:
                return maclist_text(kind, list(state.maclist(kind)))

        return show(text)

    def stop() -> str:
        backend.stop()
        return ""

    def reset(arg: str) -> str:
        client = _find_client(state, arg)
        if client is None:
            logger.debug("Client not found.")
            return NO
        backend.logout_client(client)
        return YES

    def user_cfg_save() -> str:
        backend.user_cfg_save(user_cfg_values(state))
        return YES

    def add_online_client(arg: str) -> str:
        info = parse_online_client(arg, backend.is_trusted_mac)
        if info is not None:
            ip, mac, _name = info
            backend.roam_request(ip, mac)
        return YES

    def add_roam_maclist(arg: str) -> str:
        with state.lock:
            backend.add_roam_maclist(arg)
        return YES

    def clear_roam_maclist() -> str:
        with state.lock:
            backend.clear_roam_maclist()
        return YES

    def locked_trusted_domains_text() -> str:
        with state.lock:
            return trusted_domains_text(list(state.trusted_domains))

    plain = [
        ("status", show(lambda: status_text(state))),
        ("stop", stop),
        ("clear_trusted_pdomains", answer(backend.clear_trusted_pdomains, DNSMASQ_RESTART)),
        ("show_trusted_pdomains", lambda: YES),
        ("clear_trusted_iplist", answer(backend.clear_trusted_iplist)),
        ("reparse_trusted_domains", answer(backend.reparse_trusted_domains)),
        ("clear_trusted_domains", answer(backend.clear_trusted_domains)),
        ("show_trusted_domains", show(locked_trusted_domains_text)),
        ("show_roam_mac", show_maclist(MacListKind.ROAM)),
        ("clear_roam_mac", clear_roam_maclist),
        ("show_trusted_mac", show_maclist(MacListKind.TRUSTED)),
        ("clear_trusted_mac", answer(backend.clear_trusted_maclist)),
        ("show_trusted_local_mac", show_maclist(MacListKind.TRUSTED_LOCAL)),
        ("clear_trusted_local_mac", answer(backend.clear_trusted_local_maclist)),
        ("show_untrusted_mac", show_maclist(MacListKind.UNTRUSTED)),
        ("clear_untrusted_mac", answer(backend.clear_untrusted_maclist)),
        ("user_cfg_save", user_cfg_save),
    ]
    with_param = [
        ("reset", reset),
        ("add_trusted_pdomains", answer(backend.add_trusted_pdomains, DNSMASQ_RESTART)),
        ("del_trusted_pdomains", answer(backend.del_trusted_pdomains, DNSMASQ_RESTART)),
        ("add_trusted_domains", answer(backend.add_trusted_domains)),
        ("del_trusted_domains", answer(backend.del_trusted_domains)),
        ("add_trusted_iplist", answer(backend.add_trusted_iplist)),
        ("del_trusted_iplist", answer(backend.del_trusted_iplist)),
        ("add_domain_ip", answer(backend.add_domain_ip)),
        ("add_roam_mac", add_roam_maclist),
        ("add_trusted_mac", answer(backend.add_trusted_maclist)),
        ("del_trusted_mac", answer(backend.del_trusted_maclist)),
        ("add_trusted_local_mac", answer(backend.add_trusted_local_maclist)),
        ("del_trusted_local_mac", answer(backend.del_trusted_local_maclist)),
        ("add_untrusted_mac", answer(backend.add_untrusted_maclist)),
        ("del_untrusted_mac", answer(backend.del_untrusted_maclist)),
        ("add_online_client", add_online_client),
    ]
    return [CommandEntry(name, handler, False) for name, handler in plain] + [
        CommandEntry(name, handler, True) for name, handler in with_param
    ]