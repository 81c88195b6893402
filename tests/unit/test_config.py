"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from fibdispatch._internal.config import ServerConfig, load_config
from fibdispatch._internal.errors import ConfigError

_ENV_VARS = (
    "FIBDISPATCH_HOST",
    "FIBDISPATCH_PORT",
    "FIBDISPATCH_DISPATCH_TIMEOUT",
    "FIBDISPATCH_START_METHOD",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestServerConfig:
    """Tests for the ServerConfig dataclass."""

    def test_defaults(self):
        """ServerConfig has sensible defaults."""
        config = ServerConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.dispatch_timeout is None
        assert config.start_method == "spawn"

    def test_frozen(self):
        """ServerConfig is immutable."""
        config = ServerConfig()
        with pytest.raises(AttributeError):
            config.port = 8080  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self):
        """load_config returns defaults when no env vars are set."""
        assert load_config() == ServerConfig()

    def test_host_and_port_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """FIBDISPATCH_HOST and FIBDISPATCH_PORT are read from the environment."""
        monkeypatch.setenv("FIBDISPATCH_HOST", "0.0.0.0")
        monkeypatch.setenv("FIBDISPATCH_PORT", "8080")
        config = load_config()
        assert config.host == "0.0.0.0"
        assert config.port == 8080

    def test_timeout_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """FIBDISPATCH_DISPATCH_TIMEOUT is read from the environment."""
        monkeypatch.setenv("FIBDISPATCH_DISPATCH_TIMEOUT", "2.5")
        assert load_config().dispatch_timeout == 2.5

    def test_blank_timeout_means_no_timeout(self, monkeypatch: pytest.MonkeyPatch):
        """An empty FIBDISPATCH_DISPATCH_TIMEOUT disables the timeout."""
        monkeypatch.setenv("FIBDISPATCH_DISPATCH_TIMEOUT", "  ")
        assert load_config().dispatch_timeout is None

    def test_start_method_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """FIBDISPATCH_START_METHOD is read from the environment."""
        monkeypatch.setenv("FIBDISPATCH_START_METHOD", "forkserver")
        assert load_config().start_method == "forkserver"

    def test_invalid_port_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """Non-integer FIBDISPATCH_PORT raises ConfigError."""
        monkeypatch.setenv("FIBDISPATCH_PORT", "http")
        with pytest.raises(ConfigError, match="must be an integer"):
            load_config()

    @pytest.mark.parametrize("port", ["0", "65536", "-1"])
    def test_out_of_range_port_raises_error(self, monkeypatch: pytest.MonkeyPatch, port: str):
        """FIBDISPATCH_PORT outside 1..65535 raises ConfigError."""
        monkeypatch.setenv("FIBDISPATCH_PORT", port)
        with pytest.raises(ConfigError, match="between 1 and 65535"):
            load_config()

    def test_invalid_timeout_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """Non-numeric FIBDISPATCH_DISPATCH_TIMEOUT raises ConfigError."""
        monkeypatch.setenv("FIBDISPATCH_DISPATCH_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="must be a number"):
            load_config()

    @pytest.mark.parametrize("timeout", ["0", "-1", "nan", "inf"])
    def test_non_positive_or_non_finite_timeout_raises_error(
        self, monkeypatch: pytest.MonkeyPatch, timeout: str
    ):
        """FIBDISPATCH_DISPATCH_TIMEOUT must be a finite positive number."""
        monkeypatch.setenv("FIBDISPATCH_DISPATCH_TIMEOUT", timeout)
        with pytest.raises(ConfigError, match="must be positive"):
            load_config()

    def test_unknown_start_method_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """An unknown FIBDISPATCH_START_METHOD raises ConfigError."""
        monkeypatch.setenv("FIBDISPATCH_START_METHOD", "thread")
        with pytest.raises(ConfigError, match="must be one of"):
            load_config()
