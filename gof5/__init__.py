"""gof5 - command-line F5 VPN client bootstrap."""

__version__ = "0.1.0"
