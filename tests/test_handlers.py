import json

import pytest

from apfreedog.handlers import (
    DNSMASQ_RESTART,
    build_command_table,
    parse_online_client,
    user_cfg_values,
)
from apfreedog.status import Client, GatewayState, MacListKind, TrustedDomain

MAC_A = "aa:bb:cc:dd:ee:01"
MAC_B = "aa:bb:cc:dd:ee:02"


class FakeBackend:
    def __init__(self, state=None, trusted=()):
        self.state = state if state is not None else GatewayState()
        self.trusted = set(trusted)
        self.calls = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def record(*args):
            self.calls.append((name, args))

        return record

    def is_trusted_mac(self, mac):
        return mac in self.trusted


def _table(backend):
    return {entry.name: entry for entry in build_command_table(backend)}


def test_table_command_order_and_params():
    entries = build_command_table(FakeBackend())
    names = [e.name for e in entries]
    assert names[0] == "status"
    assert names[-1] == "add_online_client"
    assert len(names) == len(set(names))
    table = {e.name: e for e in entries}
    assert table["reset"].takes_param
    assert not table["stop"].takes_param


def test_status_reply():
    reply = _table(FakeBackend())["status"].handler()
    assert reply.startswith("WiFiDog status\n\n")


def test_pan_domain_commands_reply_post_command():
    backend = FakeBackend()
    table = _table(backend)
    assert table["add_trusted_pdomains"].handler("example.com") == DNSMASQ_RESTART
    assert table["clear_trusted_pdomains"].handler() == DNSMASQ_RESTART
    assert backend.calls == [("add_trusted_pdomains", ("example.com",)), ("clear_trusted_pdomains", ())]


def test_show_trusted_pdomains_replies_yes():
    backend = FakeBackend()
    assert _table(backend)["show_trusted_pdomains"].handler() == "Yes"
    assert backend.calls == []


def test_mac_commands_reply_yes():
    backend = FakeBackend()
    table = _table(backend)
    assert table["add_trusted_mac"].handler(MAC_A) == "Yes"
    assert table["del_untrusted_mac"].handler(MAC_B) == "Yes"
    assert backend.calls == [("add_trusted_maclist", (MAC_A,)), ("del_untrusted_maclist", (MAC_B,))]


def test_show_trusted_mac_lists_addresses():
    state = GatewayState(maclists={MacListKind.TRUSTED: [MAC_A]})
    reply = _table(FakeBackend(state))["show_trusted_mac"].handler()
    assert MAC_A in reply
    assert reply.startswith("\nTrusted mac list:\n")


def test_stop_calls_backend():
    backend = FakeBackend()
    _table(backend)["stop"].handler()
    assert backend.calls == [("stop", ())]


def test_reset_by_ip_and_mac():
    client = Client(ip="192.168.1.5", mac=MAC_A)
    backend = FakeBackend(GatewayState(clients=[client]))
    table = _table(backend)
    assert table["reset"].handler("192.168.1.5") == "Yes"
    assert table["reset"].handler(MAC_A) == "Yes"
    assert table["reset"].handler("10.0.0.9") == "No"
    assert backend.calls == [("logout_client", (client,)), ("logout_client", (client,))]


def test_add_online_client_sends_roam_request():
    backend = FakeBackend(trusted=[MAC_A])
    request = json.dumps({"ip": "192.168.1.7", "mac": MAC_A, "name": "dev"})
    assert _table(backend)["add_online_client"].handler(request) == "Yes"
    assert backend.calls == [("roam_request", ("192.168.1.7", MAC_A))]


def test_add_online_client_untrusted_still_replies_yes():
    backend = FakeBackend()
    request = json.dumps({"ip": "192.168.1.7", "mac": MAC_A, "name": "dev"})
    assert _table(backend)["add_online_client"].handler(request) == "Yes"
    assert backend.calls == []


@pytest.mark.parametrize(
    "args",
    [
        "not json",
        json.dumps([1, 2]),
        json.dumps({"ip": "192.168.1.7", "mac": MAC_A}),
        json.dumps({"ip": "999.1.1.1", "mac": MAC_A, "name": "x"}),
        json.dumps({"ip": "192.168.1.7", "mac": "zz", "name": "x"}),
    ],
)
def test_parse_online_client_rejects(args):
    assert parse_online_client(args, lambda mac: True) is None


def test_parse_online_client_accepts():
    request = json.dumps({"ip": "192.168.1.7", "mac": MAC_A, "name": "dev"})
    assert parse_online_client(request, lambda mac: mac == MAC_A) == ("192.168.1.7", MAC_A, "dev")


def test_user_cfg_values_and_save():
    state = GatewayState(
        maclists={MacListKind.TRUSTED: [MAC_A, MAC_B]},
        trusted_domains=[TrustedDomain("www.example.com"), TrustedDomain("iplist", ["10.0.0.1"])],
    )
    values = user_cfg_values(state)
    assert values["trusted_maclist"] == f"{MAC_A},{MAC_B}"
    assert values["trusted_domains"] == "www.example.com"
    assert values["trusted_iplist"] == "10.0.0.1"
    assert values["untrusted_maclist"] is None
    assert values["trusted_pan_domains"] is None

    backend = FakeBackend(state)
    assert _table(backend)["user_cfg_save"].handler() == "Yes"
    assert backend.calls == [("user_cfg_save", (values,))]