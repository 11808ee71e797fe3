"""Running many simulated devices at once.

Every device is an independent DeviceSimulator with its own client and its
own copy of the configuration; the fleet helpers only start, stop and await
them together.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Iterable, Sequence

from ddisim_client import DdiError, ManagementClient

from ddisim_device.simulator import DeviceSimulator

logger = logging.getLogger(__name__)


def fleet_controller_ids(prefix: str, count: int) -> list[str]:
    """Generate controller IDs for a fleet.

    Args:
        prefix: ID prefix.
        count: Number of devices (must be positive).

    Returns:
        IDs like ["device-001", "device-002", ...].

    Raises:
        ValueError: If count is not positive.
    """
    if count < 1:
        raise ValueError("count must be a positive number")
    return [f"{prefix}-{i:03d}" for i in range(1, count + 1)]


async def register_devices(
    mgmt: ManagementClient,
    controller_ids: Sequence[str],
) -> dict[str, str]:
    """Make sure a target exists for every controller ID and collect tokens.

    Devices that cannot be registered are logged and skipped.

    Args:
        mgmt: Open Management API client.
        controller_ids: IDs to register.

    Returns:
        Mapping of controller ID to security token, for registered devices only.
    """
    tokens: dict[str, str] = {}
    total = len(controller_ids)
    for index, controller_id in enumerate(controller_ids, start=1):
        try:
            target = await mgmt.get_or_create_target(
                controller_id,
                controller_id,
                f"Multi-simulator device {index} of {total}",
            )
        except DdiError as exc:
            logger.error("Failed to register %s: %s", controller_id, exc)
            continue

        tokens[controller_id] = target.security_token
        logger.info("[%d/%d] %s registered", index, total, controller_id)
    return tokens


def stop_all(simulators: Iterable[DeviceSimulator]) -> None:
    """Stop every simulator."""
    for simulator in simulators:
        simulator.stop()


def install_signal_handlers(simulators: Sequence[DeviceSimulator]) -> None:
    """Stop all simulators on SIGINT or SIGTERM.

    Platforms without loop signal handler support are left untouched.
    """
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_all, list(simulators))


async def run_fleet(simulators: Sequence[DeviceSimulator]) -> None:
    """Run simulators concurrently until all of them have been stopped.

    An unexpected error in one simulator is logged and does not affect the
    others.
    """
    logger.info("Starting %d simulators...", len(simulators))
    results = await asyncio.gather(
        *(simulator.run() for simulator in simulators), return_exceptions=True
    )
    for simulator, result in zip(simulators, results):
        if isinstance(result, BaseException):
            logger.error("Simulator %s terminated: %s", simulator.controller_id, result)
