# apfreedog

Building blocks for a captive-portal gateway on Linux, using only the standard library.

## What is in the package

- **`apfreedog.netutil`** holds the low-level network helpers:
  - `is_valid_ip` and `is_valid_mac` validate addresses.
  - `IcmpPinger` is a raw-socket ICMP echo sender that can be used as a context manager. `build_echo_request` and `icmp_checksum` build the packets it sends.
  - `save_pid_file` writes the current process id to a file.
  - `is_socket_valid`, `set_nonblocking` and `connect_with_timeout` help with sockets.
  - `parse_cpu_fields` and `get_cpu_usage` sample CPU usage from `/proc/stat`.
- **`apfreedog.status`** covers gateway status:
  - `ConnectivityTracker` guesses whether the internet and the auth server are reachable, from the times of the last successful and failed actions.
  - The data classes `GatewayState`, `Client`, `OfflineClient`, `TrustedDomain`, `AuthServer` and `SysInfo` hold the state that reports are built from. `MacListKind` names the MAC lists.
  - `status_text` renders the human-readable report and `mqtt_status_text` the JSON report.
  - `serialize_maclist`, `serialize_trusted_domains`, `serialize_iplist`, `serialize_pan_domains`, `trusted_domains_text`, `mqtt_trusted_domains_text`, `mqtt_trusted_iplist_text`, `mqtt_pan_domains_text` and `maclist_text` render the trusted lists.
- **`apfreedog.client`** builds what is sent to the auth server:
  - `original_url` gives the client's percent-encoded original URL.
  - `redirect_url_to_auth` builds the login redirect URL. It uses `GatewayInfo` and `auth_server_endpoint`.
  - `request_headers` lists the headers sent with each request.
  - `run_periodic` calls a callback at a fixed interval until a stop event is set.
- **`apfreedog.handlers`** defines the control commands:
  - `build_command_table` binds every control command to a `ControlBackend` you supply, as `CommandEntry` objects.
  - `parse_online_client` checks `add_online_client` requests.
  - `user_cfg_values` gives the options to save.
- **`apfreedog.control_server`** runs the control socket:
  - `ControlServer` serves the commands over a Unix-domain socket.
  - `dispatch` matches a request against each command name as a prefix, in order, and answers `not support` when none matches.
  - `serve(path)` blocks until `shutdown()` is called.
  - `prepare_socket_path` checks the socket path and removes a stale socket file.
- **`apfreedog.wdctl`** is the `wdctlx` command-line client.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## The `wdctlx` command

`wdctlx` sends one command to a running control socket and prints the reply. The default socket path is `/tmp/wdctl.sock`.

```
wdctlx [-s <socket path>] command [argument]
```

Examples:

```
wdctlx status
wdctlx show_trusted_domains
wdctlx add_trusted_mac 00:00:5e:00:53:01,00:00:5e:00:53:02
wdctlx reset 192.168.1.20
wdctlx demo
```

Options and special commands:

- `wdctlx -h` prints the options and every command with its description, and exits with status 1.
- `wdctlx demo` prints a sample invocation of every command. An unknown command name does the same.
- A command given without its required argument, or with an argument it does not take, is an error.

Some commands change DNS rules, such as `add_trusted_pdomains`. For these the server answers with a post command of the form `CMD[...]`, and `wdctlx` runs the bracketed text in the shell.

## Library use

Track connectivity:

```python
from apfreedog.status import ConnectivityTracker

tracker = ConnectivityTracker(check_interval=60)
tracker.mark_auth_online()
print(tracker.is_online(), tracker.is_auth_online())  # True True
```

Validate addresses:

```python
from apfreedog.netutil import is_valid_ip, is_valid_mac

is_valid_ip("192.168.1.1")          # True
is_valid_mac("00:00:5e:00:53:01")   # True
```

Serve the control socket:

```python
from apfreedog.control_server import ControlServer
from apfreedog.handlers import build_command_table

server = ControlServer(build_command_table(my_backend))  # my_backend implements ControlBackend
server.serve("/tmp/wdctl.sock")
```

## What the package does not do

The package does not include the gateway daemon itself. In particular:

- It sets no firewall rules.
- It keeps no client list of its own.
- It sends no HTTP requests to an auth server. `apfreedog.client` only builds URLs and headers.
- It resolves no trusted domains.

All of these are left to the `ControlBackend` you supply.

It also has none of these system lookups:

- bridge forwarding-database lookups to tell wired from wireless clients,
- detection of the default-route interface,
- interface IP, MAC or ARP lookups,
- saving settings to a system configuration store.