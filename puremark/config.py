"""Configuration for the puremark server and client."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_DB_PATH = Path.home() / ".puremark" / "db.sqlite"


def _env_flag(name: str, default: bool) -> bool:
    """Read a "true"/"false" environment flag.

    Only the opposite literal flips the default, so ``DB_ALLOW_EXPORT=yes``
    keeps export enabled and ``DB_PREFILL=1`` keeps prefill disabled.
    """
    value = os.environ.get(name)
    if value is None:
        return default
    if default:
        return value != "false"
    return value == "true"


@dataclass
class ClientConfig:
    """Configuration for the HTTP API client."""
    base_url: str = "http://127.0.0.1:3000"
    timeout: float = 10.0  # Seconds

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create config from environment variables."""
        return cls(
            base_url=os.environ.get("PUREMARK_API_URL", "http://127.0.0.1:3000"),
            timeout=float(os.environ.get("PUREMARK_API_TIMEOUT", "10.0")),
        )


@dataclass
class Config:
    """Main configuration for puremark."""
    client: ClientConfig = field(default_factory=ClientConfig.from_env)
    db_path: Path = DEFAULT_DB_PATH
    host: str = "127.0.0.1"
    port: int = 3000

    # Database file transfer and seeding
    allow_export: bool = True
    allow_import: bool = True
    db_prefill: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        db_path_str = os.environ.get("PUREMARK_DB_PATH")
        db_path = Path(db_path_str) if db_path_str else DEFAULT_DB_PATH

        return cls(
            client=ClientConfig.from_env(),
            db_path=db_path,
            host=os.environ.get("PUREMARK_HOST", "127.0.0.1"),
            port=int(os.environ.get("PUREMARK_PORT", "3000")),
            allow_export=_env_flag("DB_ALLOW_EXPORT", True),
            allow_import=_env_flag("DB_ALLOW_IMPORT", True),
            db_prefill=_env_flag("DB_PREFILL", False),
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance.

    Returns:
        Config loaded from environment
    """
    global _config

    if _config is None:
        _config = Config.from_env()

    return _config
