"""
Centralized configuration for FlowVision analytics.

All values that vary by deployment belong here.
Override via environment variables where marked.
"""

import os

# ============================================================
# Files
# ============================================================

HOME: str = os.environ.get("FLOWVISION_HOME", "")
"""Writable home directory. Empty means ~/.flowvision."""

CONFIG_PATH: str = os.environ.get("FLOWVISION_CONFIG", "")
"""Path to analytics.yaml. Empty means <repo>/config/analytics.yaml."""

SNAPSHOT_PATH: str = os.environ.get("FLOWVISION_SNAPSHOT", "")
"""JSON snapshot served by the API when no repository is injected."""

# ============================================================
# Engine
# ============================================================

CACHE_TTL_SECONDS: int = int(os.environ.get("FLOWVISION_CACHE_TTL", "300"))
"""Time-to-live for cached correlation results (seconds)."""

CACHE_MAX_ENTRIES: int = int(os.environ.get("FLOWVISION_CACHE_MAX_ENTRIES", "2000"))
"""Entries kept before least-recently-used eviction."""

# ============================================================
# API / Logging
# ============================================================

API_TOKEN_ENV: str = "FLOWVISION_API_TOKEN"
"""Name of the env var holding the bearer token. Read at request time."""

LOG_LEVEL: str = os.environ.get("FLOWVISION_LOG_LEVEL", "INFO")

CORS_ORIGINS: list[str] = [
    o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()
]
"""Allowed CORS origins; "*" allows all (development default)."""
