"""
Configuration Management

Handles loading discovery configuration from environment variables and
config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import json

from dotenv import load_dotenv


# Shortest wait a discovery loop may use (seconds)
MIN_DURATION = 1.0

DEFAULT_SECRET = 'lan-discovery'
DEFAULT_DISCOVERY_PORT = 47777
DEFAULT_BROADCAST_ADDRESS = '255.255.255.255'

SEARCH_MODES = ('continuous', 'single')


class ConfigError(ValueError):
    """Raised when a configuration value is unusable."""


def coerce_duration(value: float) -> float:
    """Clamp an interval/timeout to at least MIN_DURATION seconds."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return MIN_DURATION
    if value < MIN_DURATION:
        return MIN_DURATION
    return value


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_number(name: str, cast, default):
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


@dataclass
class Config:
    """
    LAN Discovery Configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (LAN_DISCOVERY_*)
    2. Config file (config.json)
    3. Default values
    """
    # Discovery
    secret: str = DEFAULT_SECRET
    discovery_port: int = DEFAULT_DISCOVERY_PORT
    broadcast_address: str = DEFAULT_BROADCAST_ADDRESS
    automatic: bool = True
    search_mode: str = 'continuous'

    # Timeouts (seconds)
    discovery_interval: float = 1.0
    discovery_timeout: float = 2.0

    # Host application
    host_port: int = 7770
    api_port: int = 8080

    # Logging
    log_level: str = 'INFO'

    def validate(self) -> 'Config':
        """
        Check that the configuration can drive a discovery session.

        Raises:
            ConfigError: If a value is out of range
        """
        if not self.secret:
            raise ConfigError("Discovery secret must not be empty")

        if not 1 <= int(self.discovery_port) <= 65535:
            raise ConfigError(
                f"Discovery port must be within 1-65535, got {self.discovery_port}"
            )

        if self.search_mode not in SEARCH_MODES:
            raise ConfigError(
                f"Unknown search mode '{self.search_mode}' "
                f"(expected one of {', '.join(SEARCH_MODES)})"
            )

        return self

    @property
    def interval(self) -> float:
        """Probe interval after coercion."""
        return coerce_duration(self.discovery_interval)

    @property
    def timeout(self) -> float:
        """Receive timeout after coercion."""
        return coerce_duration(self.discovery_timeout)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Discovery
        config.secret = os.getenv('LAN_DISCOVERY_SECRET', config.secret)
        config.discovery_port = _env_number('LAN_DISCOVERY_PORT', int, config.discovery_port)
        config.broadcast_address = os.getenv('LAN_DISCOVERY_BROADCAST', config.broadcast_address)

        automatic = os.getenv('LAN_DISCOVERY_AUTOMATIC')
        if automatic is not None:
            config.automatic = _parse_bool(automatic)

        config.search_mode = os.getenv(
            'LAN_DISCOVERY_SEARCH_MODE', config.search_mode
        ).lower()

        # Timeouts
        config.discovery_interval = _env_number('LAN_DISCOVERY_INTERVAL', float, config.discovery_interval)
        config.discovery_timeout = _env_number('LAN_DISCOVERY_TIMEOUT', float, config.discovery_timeout)

        # Host application
        config.host_port = _env_number('LAN_DISCOVERY_HOST_PORT', int, config.host_port)
        config.api_port = _env_number('LAN_DISCOVERY_API_PORT', int, config.api_port)

        # Logging
        config.log_level = os.getenv('LAN_DISCOVERY_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        config.secret = data.get('secret', config.secret)
        config.discovery_port = data.get('discovery_port', config.discovery_port)
        config.broadcast_address = data.get('broadcast_address', config.broadcast_address)
        config.automatic = data.get('automatic', config.automatic)
        config.search_mode = data.get('search_mode', config.search_mode)

        config.discovery_interval = data.get('discovery_interval', config.discovery_interval)
        config.discovery_timeout = data.get('discovery_timeout', config.discovery_timeout)

        config.host_port = data.get('host_port', config.host_port)
        config.api_port = data.get('api_port', config.api_port)

        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'secret': self.secret,
            'discovery_port': self.discovery_port,
            'broadcast_address': self.broadcast_address,
            'automatic': self.automatic,
            'search_mode': self.search_mode,
            'discovery_interval': self.discovery_interval,
            'discovery_timeout': self.discovery_timeout,
            'host_port': self.host_port,
            'api_port': self.api_port,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Keys that environment variables may override
_ENV_KEYS = [
    'secret', 'discovery_port', 'broadcast_address', 'automatic',
    'search_mode', 'discovery_interval', 'discovery_timeout',
    'host_port', 'api_port', 'log_level',
]


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings. An environment value
    equal to the built-in default is indistinguishable from an unset one,
    so it cannot override a different value from the file.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for key in _ENV_KEYS:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "secret": "game-v1",
  "discovery_port": 47777,
  "broadcast_address": "255.255.255.255",
  "automatic": true,
  "search_mode": "continuous",
  "discovery_interval": 1.0,
  "discovery_timeout": 2.0,
  "host_port": 7770,
  "api_port": 8080,
  "log_level": "INFO"
}
"""


if __name__ == "__main__":
    # Print example config
    print("Example configuration file (config.json):")
    print(EXAMPLE_CONFIG)
