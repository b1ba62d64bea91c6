"""Driver configuration loaded from a YAML file.

Example ``pcde.yaml``::

    serial:
      port: /dev/ttyUSB0
      baudrate: 19200
      read_timeout_ms: 1000
      write_timeout_ms: 1000
    driver:
      framing: zero        # or "newline"
      simulate: false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .protocol.framing import DEFAULT_POLICY, FramingPolicy

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PCDE_CONFIG"


@dataclass
class SerialConfig:
    """Serial line settings."""

    port: str = ""
    baudrate: int = 19200
    write_timeout_ms: int = 1000
    read_timeout_ms: int = 1000

    @property
    def read_timeout(self) -> float:
        return self.read_timeout_ms / 1000.0

    @property
    def write_timeout(self) -> float:
        return self.write_timeout_ms / 1000.0

    @classmethod
    def from_dict(cls, data: dict) -> SerialConfig:
        config = cls(
            port=str(data.get("port", "")),
            baudrate=int(data.get("baudrate", 19200)),
            write_timeout_ms=int(data.get("write_timeout_ms", 1000)),
            read_timeout_ms=int(data.get("read_timeout_ms", 1000)),
        )
        if config.baudrate <= 0:
            raise ValueError(f"baudrate must be positive, got {config.baudrate}")
        if config.read_timeout_ms <= 0 or config.write_timeout_ms <= 0:
            raise ValueError("Serial timeouts must be positive milliseconds")
        return config


@dataclass
class DriverConfig:
    """Complete driver configuration."""

    serial: SerialConfig = field(default_factory=SerialConfig)
    framing: FramingPolicy = DEFAULT_POLICY
    simulate: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> DriverConfig:
        driver = data.get("driver") or {}
        framing = driver.get("framing", DEFAULT_POLICY.value)
        try:
            policy = FramingPolicy(framing)
        except ValueError:
            raise ValueError(
                f"Unknown framing '{framing}'. "
                f"Valid: {[p.value for p in FramingPolicy]}"
            ) from None
        return cls(
            serial=SerialConfig.from_dict(data.get("serial") or {}),
            framing=policy,
            simulate=bool(driver.get("simulate", False)),
        )


def load_config(path: str | Path) -> DriverConfig:
    """Load a driver configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If a setting has an invalid value.
    """
    path = Path(path)
    logger.info("Loading configuration from %s", path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a mapping")
    return DriverConfig.from_dict(data)


def config_from_env() -> DriverConfig:
    """Load the file named by ``PCDE_CONFIG``, or return defaults."""
    path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return DriverConfig()
    return load_config(path)
