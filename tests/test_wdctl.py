import os
import shutil
import socket
import tempfile
import threading

import pytest

from apfreedog.wdctl import (
    COMMANDS,
    CommandError,
    CommandSpec,
    build_request,
    demo_text,
    execute_post_cmd,
    handle_response,
    main,
    send_command,
    usage_text,
)


@pytest.fixture
def socket_dir():
    path = tempfile.mkdtemp(prefix="wd")
    yield path
    shutil.rmtree(path, ignore_errors=True)


def _serve_once(path, reply):
    received = []
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.listen(1)

    def run():
        conn, _ = server.accept()
        with conn:
            received.append(conn.recv(4096))
            if reply:
                conn.sendall(reply)
        server.close()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, received


def test_usage_lists_every_command():
    text = usage_text("prog")
    assert text.startswith("Usage: prog [options] command [arguments]\n")
    for spec in COMMANDS:
        assert f" {spec.command} {spec.args or ''}\t {spec.description} \n" in text


def test_demo_has_one_line_per_command():
    lines = demo_text("prog").splitlines()
    assert len(lines) == len(COMMANDS)
    assert all(line.startswith("prog ") for line in lines)
    assert "prog add_trusted_iplist 192.168.1.2,192.168.1.3,192.168.1.4" in lines


def test_command_spec_takes_param():
    assert CommandSpec("x", "a,b", "d").takes_param is True
    assert CommandSpec("x", None, "d").takes_param is False


def test_build_request_without_param():
    assert build_request(["status"]) == "status"


def test_build_request_with_param_ignores_extras():
    assert build_request(["add_trusted_mac", "m1,m2", "extra"]) == "add_trusted_mac m1,m2"


def test_build_request_missing_param():
    with pytest.raises(CommandError) as info:
        build_request(["reset"])
    assert info.value.command == "reset"


def test_build_request_unexpected_param():
    with pytest.raises(CommandError):
        build_request(["status", "now"])


def test_build_request_empty():
    with pytest.raises(CommandError) as info:
        build_request([])
    assert info.value.command is None


@pytest.mark.parametrize("args", [["demo"], ["no_such_command"]])
def test_build_request_demo_and_unknown(args):
    assert build_request(args) is None


@pytest.mark.parametrize("raw", ["[]", "ab", "echo hi", "[echo"])
def test_execute_post_cmd_illegal(raw):
    assert execute_post_cmd(raw) == f"[{raw}] is illegal post command"


def test_execute_post_cmd_runs_shell(tmp_path):
    target = tmp_path / "ran"
    cmd = f"touch {target}"
    assert execute_post_cmd(f"[{cmd}]") == f"execut shell [{cmd}] success"
    assert target.exists()


def test_handle_response_plain_text():
    assert handle_response(b"Yes") == "Yes\n"


def test_handle_response_stops_at_nul():
    assert handle_response(b"No\0junk") == "No\n"


def test_handle_response_empty():
    assert handle_response(b"") == ""


def test_handle_response_post_command(tmp_path):
    target = tmp_path / "post"
    result = handle_response(f"CMD[touch {target}]".encode())
    assert result.startswith("execut shell [")
    assert target.exists()


def test_send_command_round_trip(socket_dir):
    path = os.path.join(socket_dir, "s.sock")
    thread, received = _serve_once(path, b"not support")
    reply = send_command(path, "status", timeout=2.0)
    thread.join(2)
    assert received == [b"status"]
    assert reply == b"not support"


def test_send_command_missing_socket(socket_dir):
    with pytest.raises(OSError):
        send_command(os.path.join(socket_dir, "absent.sock"), "status", timeout=0.5)


def test_main_help_returns_failure(capsys):
    assert main(["-h"]) == 1
    assert capsys.readouterr().out.startswith("Usage: ")


def test_main_invalid_command(capsys):
    assert main(["reset"]) == 1
    captured = capsys.readouterr()
    assert 'Invalid command "reset"' in captured.err
    assert "Usage: " in captured.out


def test_main_demo(capsys):
    assert main(["demo"]) == 0
    assert capsys.readouterr().out == demo_text()


def test_main_without_server(socket_dir, capsys):
    path = os.path.join(socket_dir, "absent.sock")
    assert main(["-s", path, "status"]) == 1
    assert "wifidog probably not started" in capsys.readouterr().out


def test_main_talks_to_server(socket_dir, capsys):
    path = os.path.join(socket_dir, "s.sock")
    thread, received = _serve_once(path, b"Yes")
    assert main(["add_trusted_iplist", "10.0.0.1", "-s", path]) == 0
    thread.join(2)
    assert received == [b"add_trusted_iplist 10.0.0.1"]
    assert capsys.readouterr().out == "Yes\n"