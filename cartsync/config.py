"""
Runtime configuration read from the environment.

All values are module-level constants, resolved once at import time.
"""

import os


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# Remote cart API
CART_API_URL = os.environ.get("CART_API_URL", "http://localhost:8000").rstrip("/")
CART_API_TOKEN = os.environ.get("CART_API_TOKEN", "")
CART_API_TIMEOUT = _float_env("CART_API_TIMEOUT", 10.0)

# Local snapshot storage: "file", "redis" or "memory"
CART_STORAGE = os.environ.get("CART_STORAGE", "file").lower()
CART_STORAGE_PATH = os.environ.get("CART_STORAGE_PATH", ".cart_cache.json")
CART_STORAGE_SCOPE = os.environ.get("CART_STORAGE_SCOPE", "default")
CART_TTL = _int_env("CART_TTL", 86400)  # 0 disables expiry

# Upstash Redis (only read when CART_STORAGE=redis)
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
