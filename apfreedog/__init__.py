"""Captive-portal gateway helpers: network utilities, status reports, auth-server URLs and a control socket."""

__version__ = "3.11.1715"