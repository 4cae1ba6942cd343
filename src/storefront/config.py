"""Environment-driven settings for storefront."""

import os
from pathlib import Path

# Local data directory within the storefront project
# Can be overridden via STOREFRONT_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def get_data_dir() -> Path:
    """Root directory of the JSON document stores."""
    return Path(os.environ.get("STOREFRONT_DATA_DIR", _default_data_dir))


def get_cors_origins() -> list[str]:
    raw = os.environ.get("STOREFRONT_CORS_ORIGINS")
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


def get_log_level() -> str:
    return os.environ.get("STOREFRONT_LOG_LEVEL", "INFO").upper()
