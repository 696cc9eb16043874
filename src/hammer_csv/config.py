"""Configuration management for hammer-csv."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

from .constants import DEFAULT_THREAD_COUNT


class FailurePolicy(str, Enum):
    """How a dispatch reacts when a row callback raises."""

    ABORT_CHUNK = "abort_chunk"  # Failing worker stops, siblings continue
    CONTINUE = "continue"  # Record the failure and keep going
    FAIL_FAST = "fail_fast"  # Every worker stops before its next row


@dataclass
class ForemanConfig:
    """Foreman server connection configuration."""

    base_url: str
    username: str
    password: str
    timeout: int = 30
    verify_ssl: bool = True
    max_connections: int = 50
    max_keepalive: int = 20


@dataclass
class DispatchConfig:
    """Parallel row dispatch configuration."""

    threads: int = DEFAULT_THREAD_COUNT
    failure_policy: FailurePolicy = FailurePolicy.ABORT_CHUNK


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    file: Path | None = None


@dataclass
class CsvConfig:
    """
    Complete configuration for hammer-csv.

    This combines all configuration sections.
    """

    foreman: ForemanConfig | None = None
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> "CsvConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            CsvConfig instance
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        foreman_data = data.get("foreman")
        foreman = ForemanConfig(**foreman_data) if foreman_data else None

        dispatch_data = dict(data.get("dispatch") or {})
        if "failure_policy" in dispatch_data:
            dispatch_data["failure_policy"] = FailurePolicy(dispatch_data["failure_policy"])
        dispatch = DispatchConfig(**dispatch_data)

        logging_data = dict(data.get("logging") or {})
        if logging_data.get("file"):
            logging_data["file"] = Path(logging_data["file"])
        logging = LoggingConfig(**logging_data)

        return cls(foreman=foreman, dispatch=dispatch, logging=logging)

    def to_file(self, config_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            config_path: Path to save config file
        """
        data = {
            "foreman": self.foreman.__dict__ if self.foreman else None,
            "dispatch": {
                k: v.value if isinstance(v, Enum) else v for k, v in self.dispatch.__dict__.items()
            },
            "logging": {
                k: str(v) if isinstance(v, Path) else v
                for k, v in self.logging.__dict__.items()
                if v is not None
            },
        }

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls) -> "CsvConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            FOREMAN_URL: Foreman server URL
            FOREMAN_USERNAME: Foreman username
            FOREMAN_PASSWORD: Foreman password
            FOREMAN_VERIFY_SSL: Set to 'false' to disable certificate checks
            HAMMER_CSV_THREADS: Worker count (default: 1)
            LOG_LEVEL: Logging level (default: INFO)
            LOG_FORMAT: console or json (default: console)

        Returns:
            CsvConfig instance

        Raises:
            ValueError: If FOREMAN_URL is set but credentials are missing
        """
        foreman_config = None
        foreman_url = os.getenv("FOREMAN_URL")
        if foreman_url:
            username = os.environ.get("FOREMAN_USERNAME", "")
            password = os.environ.get("FOREMAN_PASSWORD", "")

            missing_creds = []
            if not username:
                missing_creds.append("FOREMAN_USERNAME")
            if not password:
                missing_creds.append("FOREMAN_PASSWORD")

            if missing_creds:
                raise ValueError(
                    f"FOREMAN_URL is set but required credentials are missing: "
                    f"{', '.join(missing_creds)}."
                )

            verify_ssl_str = os.environ.get("FOREMAN_VERIFY_SSL", "true").lower()
            foreman_config = ForemanConfig(
                base_url=foreman_url,
                username=username,
                password=password,
                verify_ssl=verify_ssl_str not in ("false", "0", "no", "off"),
            )

        dispatch_config = DispatchConfig(
            threads=int(os.environ.get("HAMMER_CSV_THREADS", str(DEFAULT_THREAD_COUNT))),
        )

        logging_config = LoggingConfig(
            level=os.environ.get("LOG_LEVEL", "INFO"),
            format=os.environ.get("LOG_FORMAT", "console"),
        )

        return cls(foreman=foreman_config, dispatch=dispatch_config, logging=logging_config)


def load_config(config_file: Path | None = None) -> CsvConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        CsvConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return CsvConfig.from_file(config_file)
    return CsvConfig.from_env()
