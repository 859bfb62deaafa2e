"""
Configuration module for the confidential scoring engine.

Centralizes configuration with environment variable support and a cached
JSON loader for trust stores.
"""

import os
import json
import threading
import time
from typing import Dict, Any, Optional
from pathlib import Path

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("ENCSCORE_ENV", "dev")  # dev|stage|prod

# Network the node targets
CHAIN_ID = int(os.getenv("ENCSCORE_CHAIN_ID", "31337"))

# Deployer / owner of the hosted contract
DEPLOYER_ADDRESS = os.getenv(
    "ENCSCORE_DEPLOYER", "0x" + "f39fd6e51aad88f6f4ce6ab8827279cfffb92266"
)

# Empty means: deploy through the internal default-threshold path
INITIAL_THRESHOLD = os.getenv("ENCSCORE_INITIAL_THRESHOLD", "")

# Rate limits (requests per minute)
SUBMIT_RPM = int(os.getenv("SUBMIT_RPM", "60"))
DECRYPT_RPM = int(os.getenv("DECRYPT_RPM", "120"))

# Input attestation keys
INPUT_SIGNING_KEY_PATH = os.getenv("INPUT_SIGNING_KEY_PATH", "secrets/input_signing_key.json")
TRUST_STORE_PATH = os.getenv("TRUST_STORE_PATH", "trust/trust_store.json")
INPUT_KID = os.getenv("ENCSCORE_INPUT_KID", "input-verifier-01")

# Account keys that sign requests to the node (address -> Ed25519 public key)
ACCOUNT_KEYS_PATH = os.getenv("ACCOUNT_KEYS_PATH", "trust/account_keys.json")

# Signed request freshness
REQUEST_FRESHNESS_SECONDS = int(os.getenv("REQUEST_FRESHNESS_SECONDS", "300"))
MAX_CLOCK_SKEW_SECONDS = int(os.getenv("MAX_CLOCK_SKEW_SECONDS", "30"))

# Logging
LOG_LEVEL = os.getenv("ENCSCORE_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("ENCSCORE_LOG_JSON", "1").lower() in ("1", "true", "yes")

# Cache TTL (seconds)
CONFIG_CACHE_TTL = int(os.getenv("CONFIG_CACHE_TTL", "60"))


# ============================================================
# Cached Configuration Loaders
# ============================================================

class CachedConfig:
    """
    Thread-safe cached configuration loader.
    Reloads configuration files periodically based on TTL.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds

    def _is_stale(self, key: str) -> bool:
        if key not in self._timestamps:
            return True
        return (time.time() - self._timestamps[key]) > self._ttl

    def get_json(self, path: str, force_reload: bool = False) -> Dict[str, Any]:
        """
        Load JSON file with caching.
        Returns cached version if within TTL, otherwise reloads.
        """
        with self._lock:
            if not force_reload and path in self._cache and not self._is_stale(path):
                return self._cache[path]

            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._cache[path] = data
            self._timestamps[path] = time.time()
            return data

    def invalidate(self, path: Optional[str] = None) -> None:
        """Invalidate cache for a specific path or all paths."""
        with self._lock:
            if path:
                self._cache.pop(path, None)
                self._timestamps.pop(path, None)
            else:
                self._cache.clear()
                self._timestamps.clear()


_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_json_cached(path: str) -> Dict[str, Any]:
    """Load JSON file with caching."""
    return _config_cache.get_json(path)


def invalidate_config_cache() -> None:
    _config_cache.invalidate()


def initial_threshold() -> Optional[int]:
    """The configured initial threshold, or None for the default path."""
    if not INITIAL_THRESHOLD.strip():
        return None
    return int(INITIAL_THRESHOLD)


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check which key material files exist.
    Returns dict of name -> exists.
    """
    paths = {
        "input_signing_key": INPUT_SIGNING_KEY_PATH,
        "trust_store": TRUST_STORE_PATH,
    }
    return {name: Path(path).exists() for name, path in paths.items()}


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    return ENV == "prod"


def is_debug() -> bool:
    return os.getenv("ENCSCORE_DEBUG", "").lower() in ("1", "true", "yes")
