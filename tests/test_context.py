"""Tests for the invocation context."""

from gof5.core.context import (
    DAEMON_ENV,
    HANDOFF_ENV,
    PASSWORD_ENV,
    InvocationContext,
    child_environment,
)


class TestCapture:
    """Tests for InvocationContext.capture."""

    def test_foreground(self):
        """Test a plain invocation."""
        environ = {PASSWORD_ENV: "hunter2", "SUDO_UID": "1000", "SUDO_USER": "jdoe"}

        context = InvocationContext.capture(environ)

        assert context.daemon_child is False
        assert context.handoff is None
        assert context.env_password == "hunter2"
        assert context.sudo_uid == "1000"
        assert context.sudo_user == "jdoe"

    def test_daemon_child_clears_reserved_variables(self):
        """Test that the child removes the hand-off variables from its environment."""
        environ = {DAEMON_ENV: "1", HANDOFF_ENV: "5:6:7", "PATH": "/usr/bin"}

        context = InvocationContext.capture(environ)

        assert context.daemon_child is True
        assert context.handoff == "5:6:7"
        assert environ == {"PATH": "/usr/bin"}

    def test_wrong_sentinel(self):
        """Test that only the sentinel value marks a daemon child."""
        environ = {DAEMON_ENV: "yes", HANDOFF_ENV: "5:6"}

        context = InvocationContext.capture(environ)

        assert context.daemon_child is False
        assert context.handoff is None
        assert HANDOFF_ENV not in environ

    def test_empty_values_are_unset(self):
        """Test that empty sudo and password variables count as absent."""
        context = InvocationContext.capture({PASSWORD_ENV: "", "SUDO_UID": ""})

        assert context.env_password is None
        assert context.sudo_uid is None


class TestPlatformPredicates:
    """Tests for platform properties."""

    def test_bsd(self):
        assert InvocationContext(platform="darwin").is_bsd
        assert InvocationContext(platform="freebsd13").is_bsd
        assert not InvocationContext(platform="linux").is_bsd

    def test_sudo_invoked(self):
        assert InvocationContext(platform="linux", euid=0, sudo_uid="1000").sudo_invoked
        assert not InvocationContext(platform="linux", euid=1000, sudo_uid="1000").sudo_invoked
        assert not InvocationContext(platform="linux", euid=0).sudo_invoked


def test_child_environment_leaves_parent_untouched():
    """Test that the reserved variables only go into the child's mapping."""
    base = {"PATH": "/usr/bin"}

    env = child_environment(base, "3:4")

    assert env == {"PATH": "/usr/bin", DAEMON_ENV: "1", HANDOFF_ENV: "3:4"}
    assert base == {"PATH": "/usr/bin"}
