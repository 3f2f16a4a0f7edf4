"""Configuration loading and validation for the ledger."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from strato_ledger.models.source import CREDIT_CARD_SOURCE, SourceInfo, SourceRegistry
from strato_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Environment variable overriding the state directory
STATE_DIR_ENV = "STRATO_LEDGER_STATE_DIR"

DEFAULT_STATE_DIR = "~/.strato_ledger"


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


@dataclass
class FetchConfig:
    """Configuration for fetching remote feeds.

    Attributes:
        timeout: Per-request timeout in seconds.
        retry_attempts: Extra attempts after a transient failure.
        retry_delay: Initial delay between retries (exponential backoff).
        max_workers: Concurrent fetches per refresh.
        user_agent: User-Agent header sent with each request.
    """

    timeout: float = 20.0
    retry_attempts: int = 2
    retry_delay: float = 0.5
    max_workers: int = 4
    user_agent: str = "strato-ledger"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "FetchConfig":
        """Create from dictionary."""
        config = cls(
            timeout=float(data.get("timeout", 20.0)),  # type: ignore[arg-type]
            retry_attempts=int(data.get("retry_attempts", 2)),  # type: ignore[arg-type]
            retry_delay=float(data.get("retry_delay", 0.5)),  # type: ignore[arg-type]
            max_workers=int(data.get("max_workers", 4)),  # type: ignore[arg-type]
            user_agent=str(data.get("user_agent", "strato-ledger")),
        )
        if config.max_workers < 1:
            raise ConfigError(f"fetch.max_workers must be >= 1, got {config.max_workers}")
        if config.retry_attempts < 0:
            raise ConfigError(f"fetch.retry_attempts must be >= 0, got {config.retry_attempts}")
        if config.timeout <= 0:
            raise ConfigError(f"fetch.timeout must be positive, got {config.timeout}")
        return config


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "strato_ledger.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "strato_ledger.log")),
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        state_dir: Directory holding the persisted state files.
        credit_source: Source key of the credit-card feed.
        sources: Source key to display metadata overrides.
        fetch: Remote fetch configuration.
        logging: Logging configuration.
    """

    state_dir: Path = field(default_factory=lambda: Path(DEFAULT_STATE_DIR).expanduser())
    credit_source: str = CREDIT_CARD_SOURCE
    sources: dict[str, SourceInfo] = field(default_factory=dict)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def build_registry(self) -> SourceRegistry:
        """Source registry with the configured overrides applied."""
        return SourceRegistry(self.sources, credit_source=self.credit_source)


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If file is invalid YAML or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def load_sources(data: object) -> dict[str, SourceInfo]:
    """Parse the 'sources' section of settings.yaml.

    Args:
        data: Mapping of source key to {label, color}.

    Returns:
        Dictionary of source key to SourceInfo.
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"'sources' must be a mapping, got {type(data).__name__}")

    sources: dict[str, SourceInfo] = {}
    for key, info in data.items():
        if isinstance(info, str):
            sources[str(key)] = SourceInfo(key=str(key), label=info)
        elif isinstance(info, dict):
            sources[str(key)] = SourceInfo.from_dict(str(key), info)
        else:
            raise ConfigError(f"Source '{key}' must be a label or a mapping")
    return sources


def load_config(
    settings_path: Optional[Path] = None,
    config_dir: Optional[Path] = None,
) -> Config:
    """Load configuration from settings.yaml and the environment.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Complete Config object. Missing settings fall back to defaults.

    Raises:
        ConfigError: If the settings file is present but invalid.
    """
    if config_dir is None:
        config_dir = Path("config")
    if settings_path is None:
        settings_path = config_dir / "settings.yaml"

    config = Config()

    if settings_path.exists():
        data = load_yaml_file(settings_path)

        if data.get("state_dir"):
            config.state_dir = Path(str(data["state_dir"])).expanduser()
        if data.get("credit_source"):
            config.credit_source = str(data["credit_source"])
        if "sources" in data:
            config.sources = load_sources(data["sources"])
        if "fetch" in data and data["fetch"] is not None:
            config.fetch = FetchConfig.from_dict(data["fetch"])  # type: ignore[arg-type]
        if "logging" in data and data["logging"] is not None:
            config.logging = LoggingConfig.from_dict(data["logging"])  # type: ignore[arg-type]

        logger.info(f"Loaded settings from {settings_path}")
    else:
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    env_state_dir = os.environ.get(STATE_DIR_ENV)
    if env_state_dir:
        config.state_dir = Path(env_state_dir).expanduser()
        logger.info(f"State directory overridden by {STATE_DIR_ENV}: {config.state_dir}")

    return config
