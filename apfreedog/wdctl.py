"""Command-line client for the gateway's control socket."""

from __future__ import annotations

import getopt
import logging
import select
import socket
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from apfreedog.netutil import connect_with_timeout

logger = logging.getLogger(__name__)

DEFAULT_SOCK = "/tmp/wdctl.sock"
PROGNAME = "wdctlx"
DEFAULT_TIMEOUT = 2.0
WDCTL_MSG_LENG = 1024 * 8
POST_CMD_PREFIX = "CMD"


@dataclass(frozen=True)
class CommandSpec:
    """A control command: its name, an example of its argument, and help text."""

    command: str
    args: Optional[str]
    description: str

    @property
    def takes_param(self) -> bool:
        return self.args is not None


COMMANDS = (
    CommandSpec("status", None, "get apfree wifidog status"),
    CommandSpec("clear_trusted_pdomains", None, "clear trusted pan-domain"),
    CommandSpec("show_trusted_pdomains", None, "show trusted pan-domain"),
    CommandSpec("clear_trusted_iplist", None, "clear trusted iplist"),
    CommandSpec("clear_trusted_domains", None, "clear trusted domain and it's ip"),
    CommandSpec("show_trusted_domains", None, "show trusted domains and its ip"),
    CommandSpec("show_trusted_mac", None, "show trusted mac list"),
    CommandSpec("clear_trusted_mac", None, "clear trusted mac list"),
    CommandSpec(
        "add_trusted_pdomains",
        "pan-domain1,pan-domain2...",
        "add one or more trusted pan-domain like example.com,example.org...",
    ),
    CommandSpec(
        "del_trusted_pdomains",
        "pan-domain1,pan-domain2...",
        "del one or more trusted pan-domain list like example.com,example.org...",
    ),
    CommandSpec(
        "add_trusted_domains",
        "domain1,domain2...",
        "add trusted domain list like www.example.com,www.example.org...",
    ),
    CommandSpec(
        "del_trusted_domains",
        "domain1,domain2...",
        "del trusted domain list like www.example.com,www.example.org....",
    ),
    CommandSpec("add_trusted_iplist", "ip1,ip2...", "add one or more trusted ip list like ip1,ip2..."),
    CommandSpec("del_trusted_iplist", "ip1,ip2...", "del one or more trsuted ip list like ip1,ip2..."),
    CommandSpec("add_trusted_mac", "mac1,mac2...", "add one or more trusted mac list like mac1,mac2..."),
    CommandSpec("del_trusted_mac", "mac1,mac2...", "del one or more trusted mac list like mac1,mac2..."),
    CommandSpec("reparse_trusted_domains", None, "reparse trusted domain's ip and add new parsed ip"),
    CommandSpec(
        "add_online_client",
        '{"ip":"ipaddress", "mac":"devMac", "name":"devName"}',
        "add client to connected list ",
    ),
    CommandSpec("user_cfg_save", None, "save all rule to config file"),
    CommandSpec("reset", "ip|mac", "logout connected client by its ip or mac"),
    CommandSpec("stop", None, "stop apfree wifidog"),
    CommandSpec("demo", None, "give some demonstration of method"),
)

_COMMANDS_BY_NAME = {spec.command: spec for spec in COMMANDS}

_DEMO_EXAMPLES = {
    "add_online_client": '{"ip":"192.168.1.211", "mac":"aa:bb:cc:dd:ee:ff", "name":"apfree"}',
    "add_trusted_domains": "www.example.com,captive.example.net,www.example.org,aaa,bbb",
    "add_trusted_pdomains": "example.com,example.net,example.org,aa,bb",
    "add_trusted_mac": "aa:bb:cc:11:22:33,11:22:33:aa:bb:cc:dd,22.22.22:aa:aa:aa",
    "add_trusted_iplist": "192.168.1.2,192.168.1.3,192.168.1.4",
}


class CommandError(ValueError):
    """Raised when the command line names an unusable command."""

    def __init__(self, command: Optional[str]):
        self.command = command
        super().__init__(f'Invalid command "{command if command is not None else ""}"')


def usage_text(progname: str = PROGNAME) -> str:
    """Return the usage message listing options and commands."""
    lines = [
        f"Usage: {progname} [options] command [arguments]\n",
        "\n",
        "options:\n",
        "  -s <path>         Path to the socket\n",
        "  -h                Print usage\n",
        "\n",
        "commands arg\t description:\n",
    ]
    lines.extend(f" {spec.command} {spec.args or ''}\t {spec.description} \n" for spec in COMMANDS)
    return "".join(lines)


def demo_text(progname: str = PROGNAME) -> str:
    """Return one example invocation per command."""
    lines = []
    for spec in COMMANDS:
        example = _DEMO_EXAMPLES.get(spec.command)
        if example is not None:
            lines.append(f"{progname} {spec.command} {example}\n")
        else:
            lines.append(f"{progname} {spec.command} \n")
    return "".join(lines)


def build_request(args: Sequence[str]) -> Optional[str]:
    """Turn the positional arguments into the request sent to the gateway.

    Returns None when the demonstration listing should be shown instead,
    which is the case for "demo" and for any name not in the command table.
    Raises CommandError when no command is given or its argument is missing
    or unexpected. Arguments beyond the first parameter are ignored.
    """
    if not args:
        raise CommandError(None)
    name, params = args[0], list(args[1:])
    spec = _COMMANDS_BY_NAME.get(name)
    if spec is None or spec.command == "demo":
        return None
    if params and spec.takes_param:
        return f"{spec.command} {params[0]}"
    if not params and not spec.takes_param:
        return spec.command
    raise CommandError(name)


def execute_post_cmd(raw: str) -> str:
    """Run a bracketed shell command sent back by the gateway.

    The command has the form "[shell command]". Returns the message to show.
    """
    if len(raw) >= 3 and raw.startswith("[") and raw.endswith("]"):
        cmd = raw[1:-1]
        subprocess.run(cmd, shell=True, check=False)
        return f"execut shell [{cmd}] success"
    return f"[{raw}] is illegal post command"


def send_command(socket_path: str, request: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Send ``request`` to the control socket and return the reply.

    An empty result means the gateway did not answer within ``timeout``.
    Raises OSError when the socket cannot be reached.
    """
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        connect_with_timeout(sock, socket_path, timeout)
        _, writable, _ = select.select([], [sock], [], timeout)
        if writable:
            sock.sendall(request.encode())
        readable, _, _ = select.select([sock], [], [], timeout)
        if not readable:
            return b""
        return sock.recv(WDCTL_MSG_LENG)


def handle_response(data: Union[bytes, str]) -> str:
    """Return the text to print for a reply, running any post command it carries."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    text = data.split("\0", 1)[0]
    if not data:
        return ""
    if text.startswith(POST_CMD_PREFIX):
        return execute_post_cmd(text[len(POST_CMD_PREFIX):])
    return f"{text}\n"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the control client; returns the process exit status."""
    if argv is None:
        argv = sys.argv[1:]
    progname = PROGNAME
    try:
        opts, rest = getopt.gnu_getopt(list(argv), "s:h")
    except getopt.GetoptError as exc:
        print(f"{progname}: {exc}", file=sys.stderr)
        sys.stdout.write(usage_text(progname))
        return 1

    socket_path = DEFAULT_SOCK
    for opt, value in opts:
        if opt == "-h":
            sys.stdout.write(usage_text(progname))
            return 1
        if opt == "-s" and value:
            socket_path = value

    try:
        request = build_request(rest)
    except CommandError as exc:
        print(f"wdctlx: Error: {exc}", file=sys.stderr)
        sys.stdout.write(usage_text(progname))
        return 1

    if request is None:
        sys.stdout.write(demo_text(progname))
        return 0

    try:
        reply = send_command(socket_path, request)
    except OSError as exc:
        print(f"wdctl: wifidog probably not started (Error: {exc.strerror or exc})")
        return 1

    sys.stdout.write(handle_response(reply))
    return 0