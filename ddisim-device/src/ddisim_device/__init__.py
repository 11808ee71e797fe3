"""Simulated hawkBit devices.

This package drives a :class:`ddisim_client.DdiClient` through deployment,
cancellation and confirmation workflows with realistic timing, for one device
or for a whole fleet.

Example:
    ddisim simulate --url http://localhost:8081 --controller-id dev-01 --target-token abc
"""

from ddisim_device.config import (
    DEFAULT_DEVICE_ATTRIBUTES,
    SimulatorConfig,
    load_simulator_config,
    simulator_config_from_dict,
)
from ddisim_device.fleet import fleet_controller_ids, register_devices, run_fleet, stop_all
from ddisim_device.simulator import (
    DeploymentPhase,
    DeviceSimulator,
    SimulatorState,
    SimulatorStats,
)

__all__ = [
    # Config
    "DEFAULT_DEVICE_ATTRIBUTES",
    "SimulatorConfig",
    "load_simulator_config",
    "simulator_config_from_dict",
    # Fleet
    "fleet_controller_ids",
    "register_devices",
    "run_fleet",
    "stop_all",
    # Simulator
    "DeploymentPhase",
    "DeviceSimulator",
    "SimulatorState",
    "SimulatorStats",
]
