"""Simulator configuration and YAML loading for ddisim-device.

Example YAML:
    simulator:
      polling_interval: 10
      auto_confirm: true
      download_simulation_rate: 100
      install_simulation_delay: 2000
      attributes:
        device.type: "simulator"
        hw.revision: "B2"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_DEVICE_ATTRIBUTES: dict[str, str] = {
    "device.type": "simulator",
    "device.version": "1.0.0",
}


@dataclass
class SimulatorConfig:
    """Configuration for one simulated device.

    Args:
        polling_interval: Initial polling interval in seconds. Replaced by the
            server-advertised interval once one is received.
        auto_confirm: Automatically confirm actions that require confirmation.
        download_simulation_rate: Simulated download time in ms per MB.
        install_simulation_delay: Simulated installation time in ms.
        device_attributes: Attributes sent when the server requests configData.
    """

    polling_interval: int = 10
    auto_confirm: bool = True
    download_simulation_rate: float = 100.0
    install_simulation_delay: float = 2000.0
    device_attributes: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_DEVICE_ATTRIBUTES)
    )

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.polling_interval <= 0:
            raise ValueError("polling_interval must be positive")
        if self.download_simulation_rate < 0:
            raise ValueError("download_simulation_rate must not be negative")
        if self.install_simulation_delay < 0:
            raise ValueError("install_simulation_delay must not be negative")


def simulator_config_from_dict(data: dict[str, Any]) -> SimulatorConfig:
    """Build a SimulatorConfig from the ``simulator`` mapping of a config file.

    Args:
        data: Mapping with optional keys polling_interval, auto_confirm,
            download_simulation_rate, install_simulation_delay, attributes.

    Returns:
        SimulatorConfig with defaults for missing keys.

    Raises:
        ValueError: If a value has the wrong shape or fails validation.
    """
    attributes = data.get("attributes", DEFAULT_DEVICE_ATTRIBUTES)
    if not isinstance(attributes, dict):
        raise ValueError("simulator.attributes must be a mapping")

    auto_confirm = data.get("auto_confirm", True)
    if not isinstance(auto_confirm, bool):
        raise ValueError(f"simulator.auto_confirm must be true or false, got {auto_confirm!r}")

    return SimulatorConfig(
        polling_interval=int(data.get("polling_interval", 10)),
        auto_confirm=auto_confirm,
        download_simulation_rate=float(data.get("download_simulation_rate", 100.0)),
        install_simulation_delay=float(data.get("install_simulation_delay", 2000.0)),
        device_attributes={str(k): str(v) for k, v in attributes.items()},
    )


def load_simulator_config(path: str | Path) -> SimulatorConfig:
    """Load simulator configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        Parsed SimulatorConfig.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the file is not a mapping or values are invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Simulator config not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError("Simulator config must be a YAML mapping")

    section = data.get("simulator", {})
    if not isinstance(section, dict):
        raise ValueError("simulator section must be a mapping")

    return simulator_config_from_dict(section)
