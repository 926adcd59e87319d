# =============================================================================
# tests/unit/test_config.py
# Unit Tests for configuration loading
# =============================================================================

import pytest

from shop_core import config as config_module
from shop_core.config import ShopConfig, load_config
from shop_core.errors import ConfigurationError


@pytest.fixture(autouse=True)
def no_secrets(monkeypatch):
    """Isolate every test from a developer's secrets.toml and environment"""
    monkeypatch.setattr(config_module, "_read_secrets", lambda: {})
    for name in ("SUPABASE_URL", "SUPABASE_KEY", "SHOP_CACHE_PATH", "SHOP_MAX_REPLAY_ATTEMPTS",
                 "SHOP_INCREMENT_FUNCTION", "SHOP_LOW_STOCK_THRESHOLD", "SHOP_USE_MOCK_BACKEND",
                 "SHOP_REACHABILITY_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:

    def test_mock_backend_needs_no_credentials(self):
        config = load_config({"use_mock_backend": True})

        assert config.use_mock_backend
        assert not config.has_supabase
        assert config.max_replay_attempts == 5
        assert config.low_stock_threshold == 2

    def test_missing_credentials_rejected(self):
        with pytest.raises(ConfigurationError):
            load_config()

    def test_environment_values(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "anon")
        monkeypatch.setenv("SHOP_MAX_REPLAY_ATTEMPTS", "3")

        config = load_config()

        assert config.has_supabase
        assert config.max_replay_attempts == 3

    def test_secrets_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("SHOP_LOW_STOCK_THRESHOLD", "9")
        monkeypatch.setattr(config_module, "_read_secrets", lambda: {
            "supabase": {"url": "https://s.supabase.co", "key": "k"},
            "shop": {"low_stock_threshold": 4, "increment_function": "increment_field"},
        })

        config = load_config()

        assert config.low_stock_threshold == 4
        assert config.increment_function == "increment_field"

    def test_mock_flag_from_environment(self, monkeypatch):
        monkeypatch.setenv("SHOP_USE_MOCK_BACKEND", "yes")

        assert load_config().use_mock_backend

    def test_unparseable_value(self, monkeypatch):
        monkeypatch.setenv("SHOP_MAX_REPLAY_ATTEMPTS", "many")

        with pytest.raises(ConfigurationError):
            load_config({"use_mock_backend": True})

    def test_unknown_override_rejected(self):
        with pytest.raises(ConfigurationError):
            load_config({"use_mock_backend": True, "colour": "blue"})


class TestValidate:

    @pytest.mark.parametrize("changes", [
        {"max_replay_attempts": 0},
        {"reachability_timeout": 0},
        {"low_stock_threshold": -1},
    ])
    def test_out_of_range_values(self, changes):
        config = ShopConfig(use_mock_backend=True, **changes)

        with pytest.raises(ConfigurationError):
            config.validate()

    def test_default_reachability_hosts_are_copies(self):
        first, second = ShopConfig(), ShopConfig()
        first.reachability_hosts.clear()

        assert second.reachability_hosts
