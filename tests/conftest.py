"""Shared fixtures.

Forces the keyring null backend so no test touches a real keychain, and
keeps the reserved daemon variables out of the test environment.
"""

import os
from types import SimpleNamespace
from typing import Callable

import keyring
import pytest
from keyring.backends.null import Keyring as NullKeyring

from gof5.core.context import DAEMON_ENV, HANDOFF_ENV, PASSWORD_ENV, InvocationContext

keyring.set_keyring(NullKeyring())


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (DAEMON_ENV, HANDOFF_ENV, PASSWORD_ENV, "SUDO_UID", "SUDO_USER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_context() -> Callable[..., InvocationContext]:
    """Factory for contexts of an unprivileged Linux user unless overridden."""

    def _make(**kwargs) -> InvocationContext:
        values = {
            "platform": "linux",
            "euid": os.geteuid(),
            "uid": os.getuid(),
        }
        values.update(kwargs)
        return InvocationContext(**values)

    return _make


def passwd_entry(name: str, uid: int, gid: int, home: str) -> SimpleNamespace:
    return SimpleNamespace(pw_name=name, pw_uid=uid, pw_gid=gid, pw_dir=home)


@pytest.fixture
def fake_passwd(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Replace the passwd database with a small in-memory one.

    Returns the dict of entries keyed by name; tests may add to it.
    """
    import pwd

    entries = {
        "root": passwd_entry("root", 0, 0, str(tmp_path / "root")),
        "jdoe": passwd_entry("jdoe", 1000, 1000, str(tmp_path / "home" / "jdoe")),
    }

    def getpwuid(uid):
        for entry in entries.values():
            if entry.pw_uid == uid:
                return entry
        raise KeyError(f"getpwuid(): uid not found: {uid}")

    def getpwnam(name):
        try:
            return entries[name]
        except KeyError:
            raise KeyError(f"getpwnam(): name not found: {name!r}") from None

    monkeypatch.setattr(pwd, "getpwuid", getpwuid)
    monkeypatch.setattr(pwd, "getpwnam", getpwnam)
    return entries


@pytest.fixture
def chown_calls(monkeypatch: pytest.MonkeyPatch) -> list:
    """Record os.chown calls instead of performing them."""
    calls = []
    monkeypatch.setattr(os, "chown", lambda path, uid, gid: calls.append((str(path), uid, gid)))
    return calls
