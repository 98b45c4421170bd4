"""
Configuration module for client settings.

This module provides configuration loading and validation for the API client:
endpoint location, rate limiting policy, token renewal margin and retry
behaviour. Credentials are resolved separately since they never live in the
YAML file.
"""
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError, ConfigValidationError

PUBLIC_KEY_ENV = "TCGPLAYER_PUBLIC_KEY"
PRIVATE_KEY_ENV = "TCGPLAYER_PRIVATE_KEY"


@dataclass
class ClientConfig:
    """Configuration for a single API client."""

    api_url: str = "https://api.tcgplayer.com"
    api_version: str = "v1.39.0"
    steady_rate: float = 80.0  # permits per second
    burst: int = 20
    workers: int = 8
    token_skew: float = 3600.0  # seconds subtracted from token expiry
    request_timeout: float = 30.0
    max_retries: int = 4
    retry_wait_min: float = 1.0
    retry_wait_max: float = 30.0

    @property
    def base_url(self) -> str:
        """Versioned root for catalog and pricing endpoints."""
        return f"{self.api_url.rstrip('/')}/{self.api_version}"

    @property
    def token_url(self) -> str:
        """Credential exchange endpoint."""
        return f"{self.api_url.rstrip('/')}/token"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientConfig":
        """Create ClientConfig from dictionary, using defaults for missing fields."""
        defaults = cls()
        return cls(
            api_url=data.get("api_url", defaults.api_url),
            api_version=data.get("api_version", defaults.api_version),
            steady_rate=data.get("steady_rate", defaults.steady_rate),
            burst=data.get("burst", defaults.burst),
            workers=data.get("workers", defaults.workers),
            token_skew=data.get("token_skew", defaults.token_skew),
            request_timeout=data.get("request_timeout", defaults.request_timeout),
            max_retries=data.get("max_retries", defaults.max_retries),
            retry_wait_min=data.get("retry_wait_min", defaults.retry_wait_min),
            retry_wait_max=data.get("retry_wait_max", defaults.retry_wait_max),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert ClientConfig to dictionary."""
        return asdict(self)


DEFAULT_CONFIG = ClientConfig()


def get_default_config() -> ClientConfig:
    """Return a fresh copy of the default configuration."""
    return ClientConfig.from_dict(DEFAULT_CONFIG.to_dict())


@dataclass(frozen=True)
class Credentials:
    """API key pair used for the client-credentials exchange."""

    public_key: str
    private_key: str

    @property
    def complete(self) -> bool:
        return bool(self.public_key) and bool(self.private_key)

    def validate(self) -> None:
        """
        Check that both keys are present.

        Raises:
            ConfigError: If either key is empty
        """
        if not self.complete:
            raise ConfigError("Missing TCGplayer keys")

    @classmethod
    def resolve(
        cls,
        public_key: str = "",
        private_key: str = "",
        environ: Mapping[str, str] | None = None,
    ) -> "Credentials":
        """
        Build credentials from explicit values and the environment.

        Non-empty TCGPLAYER_PUBLIC_KEY / TCGPLAYER_PRIVATE_KEY variables take
        precedence over the values passed in.

        Args:
            public_key: Public key from the command line
            private_key: Private key from the command line
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Credentials, possibly incomplete; call validate() to check
        """
        env = os.environ if environ is None else environ
        return cls(
            public_key=env.get(PUBLIC_KEY_ENV) or public_key or "",
            private_key=env.get(PRIVATE_KEY_ENV) or private_key or "",
        )


def load_config(config_path: str | Path | None = None) -> ClientConfig:
    """
    Load client configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        ClientConfig with settings from the file

    Raises:
        ConfigValidationError: If the file is not valid YAML or fails validation
    """
    if config_path is None:
        config_path = Path(__file__).parents[3] / "config" / "client.yml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        # Fall back to defaults if file doesn't exist
        return get_default_config()

    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML in {config_path}: {e}") from e

    if not data:
        return get_default_config()

    if not isinstance(data, dict):
        raise ConfigValidationError(f"Config file {config_path} must contain a mapping")

    config = ClientConfig.from_dict(data.get("client", data))
    validate_config(config)
    return config


def validate_config(config: ClientConfig) -> None:
    """
    Validate configuration.

    Args:
        config: Configuration to validate

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    if not config.api_url:
        raise ConfigValidationError("api_url must be set")

    if not config.api_version:
        raise ConfigValidationError("api_version must be set")

    if config.steady_rate <= 0:
        raise ConfigValidationError("steady_rate must be positive")

    if config.burst <= 0:
        raise ConfigValidationError("burst must be positive")

    if config.workers <= 0:
        raise ConfigValidationError("workers must be positive")

    if config.token_skew < 0:
        raise ConfigValidationError("token_skew must not be negative")

    if config.request_timeout <= 0:
        raise ConfigValidationError("request_timeout must be positive")

    if config.max_retries < 0:
        raise ConfigValidationError("max_retries must not be negative")

    if config.retry_wait_min < 0 or config.retry_wait_max < config.retry_wait_min:
        raise ConfigValidationError(
            "retry waits must satisfy 0 <= retry_wait_min <= retry_wait_max"
        )
