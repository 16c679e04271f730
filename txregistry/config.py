"""
Configuration module for TxRegistry.

Centralizes all configuration with environment variable support
and validation.
"""

import os
from pathlib import Path
from typing import Dict


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("TXREGISTRY_ENV", "dev")  # dev|stage|prod

# Storage
STORE_TYPE = os.getenv("TXREGISTRY_STORE", "sqlite")  # sqlite|memory
DB_PATH = os.getenv("TXREGISTRY_DB_PATH", "data/txregistry.db")

# Descriptor limits
MAX_FIELD_BYTES = int(os.getenv("TXREGISTRY_MAX_FIELD_BYTES", "1024"))

# Transport identity: only enable behind a gateway that authenticates callers
TRUST_CALLER_HEADER = env_flag("TXREGISTRY_TRUST_CALLER_HEADER", False)
CALLER_HEADER_NAME = os.getenv("TXREGISTRY_CALLER_HEADER_NAME", "X-Caller-Address")

# Notifications
EVENT_LOG_SIZE = int(os.getenv("TXREGISTRY_EVENT_LOG_SIZE", "1000"))

# Logging
LOG_LEVEL = os.getenv("TXREGISTRY_LOG_LEVEL", "INFO")
LOG_JSON = env_flag("TXREGISTRY_LOG_JSON", True)
LOG_FILE = os.getenv("TXREGISTRY_LOG_FILE", "")


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate the active configuration.
    Returns dict of check name -> passed.
    """
    checks = {
        "env": ENV in ("dev", "stage", "prod"),
        "store_type": STORE_TYPE in ("sqlite", "memory"),
        "max_field_bytes": MAX_FIELD_BYTES > 0,
        "event_log_size": EVENT_LOG_SIZE > 0,
    }
    if STORE_TYPE == "sqlite":
        parent = Path(DB_PATH).parent
        checks["db_dir_writable"] = (not parent.exists()) or os.access(parent, os.W_OK)
    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return env_flag("TXREGISTRY_DEBUG", False)
