"""
Runtime configuration for Preset Gateway.

Values come from the environment (optionally a ``.env`` file) and are read
once at startup.
"""

import os
import logging
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "https://open.bigmodel.cn/api/anthropic"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass
class GatewayConfig:
    """Gateway configuration."""

    # Upstream
    target_url: str = DEFAULT_TARGET
    upstream_api_key: Optional[str] = None
    upstream_timeout: float = 300.0

    # Admin
    admin_user: str = "admin"
    admin_password: str = field(default_factory=lambda: secrets.token_urlsafe(12))

    # Client keys seeded on first run
    client_keys: List[str] = field(default_factory=list)

    # Persistence
    data_dir: Path = Path("data")
    stats_save_delay: float = 5.0

    # Server
    host: str = "127.0.0.1"
    port: int = 5000
    log_level: str = "INFO"

    # Browser clients
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def stats_path(self) -> Path:
        return self.data_dir / "stats.json"

    @property
    def presets_path(self) -> Path:
        return self.data_dir / "presets.json"

    @property
    def keys_path(self) -> Path:
        return self.data_dir / "keys.json"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "GatewayConfig":
        """Build a config from environment variables."""
        load_dotenv(env_file or find_dotenv(usecwd=True))

        admin_password = os.getenv("ADMIN_PASS")
        if not admin_password:
            admin_password = secrets.token_urlsafe(12)
            logger.warning(
                "ADMIN_PASS is not set; generated admin password for this run: %s",
                admin_password,
            )

        client_keys = [
            k.strip() for k in os.getenv("CLIENT_KEYS", "").split(",") if k.strip()
        ]

        return cls(
            target_url=os.getenv("TARGET_API", DEFAULT_TARGET).rstrip("/"),
            upstream_api_key=os.getenv("UPSTREAM_API_KEY") or None,
            upstream_timeout=_env_float("UPSTREAM_TIMEOUT", 300.0),
            admin_user=os.getenv("ADMIN_USER", "admin"),
            admin_password=admin_password,
            client_keys=client_keys,
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            stats_save_delay=_env_float("STATS_SAVE_DELAY", 5.0),
            host=os.getenv("HOST", "127.0.0.1"),
            port=_env_int("PORT", 5000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
        )
