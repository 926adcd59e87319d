# =============================================================================
# shop_core/config.py
# Runtime configuration: Streamlit secrets, then environment, then defaults
# =============================================================================
"""
Configuration for the Boutique sync core.

Expected secrets.toml format:

    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"

    [shop]
    cache_path = "local_data/boutique.db"
    max_replay_attempts = 5
    increment_function = "increment_field"
    low_stock_threshold = 2

Every key can also come from the environment (SUPABASE_URL, SUPABASE_KEY,
SHOP_CACHE_PATH, SHOP_MAX_REPLAY_ATTEMPTS, SHOP_INCREMENT_FUNCTION,
SHOP_LOW_STOCK_THRESHOLD, SHOP_USE_MOCK_BACKEND).
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import streamlit as st

from shop_core.errors import ConfigurationError
from shop_core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_PATH = Path("local_data") / "boutique.db"

DEFAULT_REACHABILITY_HOSTS: List[Tuple[str, int]] = [
    ("8.8.8.8", 53),        # Google DNS
    ("1.1.1.1", 53),        # Cloudflare DNS
    ("208.67.222.222", 53), # OpenDNS
]


@dataclass
class ShopConfig:
    """Settings shared by every component built in the runtime context."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    cache_path: str = str(DEFAULT_CACHE_PATH)
    max_replay_attempts: int = 5
    increment_function: Optional[str] = None
    reachability_hosts: List[Tuple[str, int]] = field(default_factory=lambda: list(DEFAULT_REACHABILITY_HOSTS))
    reachability_timeout: float = 5.0
    low_stock_threshold: int = 2
    use_mock_backend: bool = False

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def validate(self) -> ShopConfig:
        """Raise ConfigurationError for values no component can work with."""
        if self.max_replay_attempts < 1:
            raise ConfigurationError(
                "max_replay_attempts must be at least 1",
                config_key="max_replay_attempts",
                expected_type="int >= 1",
            )
        if self.reachability_timeout <= 0:
            raise ConfigurationError(
                "reachability_timeout must be positive",
                config_key="reachability_timeout",
                expected_type="float > 0",
            )
        if self.low_stock_threshold < 0:
            raise ConfigurationError(
                "low_stock_threshold cannot be negative",
                config_key="low_stock_threshold",
            )
        if not self.use_mock_backend and not self.has_supabase:
            raise ConfigurationError(
                "Supabase url/key are required unless the mock backend is enabled",
                config_key="supabase",
            )
        return self


def _read_secrets() -> Dict[str, Dict[str, Any]]:
    """Return the [supabase] and [shop] secret tables, empty when absent."""
    sections: Dict[str, Dict[str, Any]] = {}
    try:
        for name in ("supabase", "shop"):
            if name in st.secrets:
                sections[name] = dict(st.secrets[name])
    except Exception as e:
        # No secrets.toml outside `streamlit run` is the normal case
        logger.debug(f"Streamlit secrets unavailable: {e}")
    return sections


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def load_config(overrides: Optional[Dict[str, Any]] = None) -> ShopConfig:
    """
    Build a ShopConfig from secrets, environment and explicit overrides.

    Args:
        overrides: Values that win over every other source (tests, scripts)

    Returns:
        Validated ShopConfig
    """
    secrets = _read_secrets()
    supabase = secrets.get("supabase", {})
    shop = secrets.get("shop", {})

    def pick(secret_value: Any, env_name: str, default: Any) -> Any:
        if secret_value is not None:
            return secret_value
        return os.getenv(env_name, default)

    try:
        config = ShopConfig(
            supabase_url=pick(supabase.get("url"), "SUPABASE_URL", None),
            supabase_key=pick(supabase.get("key"), "SUPABASE_KEY", None),
            cache_path=str(pick(shop.get("cache_path"), "SHOP_CACHE_PATH", DEFAULT_CACHE_PATH)),
            max_replay_attempts=int(pick(shop.get("max_replay_attempts"), "SHOP_MAX_REPLAY_ATTEMPTS", 5)),
            increment_function=pick(shop.get("increment_function"), "SHOP_INCREMENT_FUNCTION", None),
            reachability_timeout=float(pick(shop.get("reachability_timeout"), "SHOP_REACHABILITY_TIMEOUT", 5.0)),
            low_stock_threshold=int(pick(shop.get("low_stock_threshold"), "SHOP_LOW_STOCK_THRESHOLD", 2)),
            use_mock_backend=_as_bool(pick(shop.get("use_mock_backend"), "SHOP_USE_MOCK_BACKEND", False)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    for key, value in (overrides or {}).items():
        if key not in {f.name for f in fields(ShopConfig)}:
            raise ConfigurationError(f"Unknown configuration key: {key}", config_key=key)
        setattr(config, key, value)

    return config.validate()
