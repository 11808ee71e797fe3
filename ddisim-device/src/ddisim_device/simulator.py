"""Simulated hawkBit device.

The simulator polls the DDI root resource, follows the hypermedia links it
finds there and answers each pending action the way a well-behaved device
would: deployments are "downloaded" and "installed" with size-proportional
delays, cancellations are always accepted, and confirmation requests are
auto-confirmed when configured to.

Poll cycles never overlap. A cycle runs to completion, then a single-shot
timer is armed for the current polling interval, so a slow cycle pushes the
next poll later instead of queueing polls up.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, MutableMapping

from ddisim_client import DdiClient, extract_action_id, format_size, parse_polling_interval
from ddisim_client.models import (
    ActionFeedback,
    ConfigData,
    ConfigDataMode,
    ConfirmationFeedback,
    ConfirmationType,
    ControllerBase,
    DeploymentBase,
    ExecutionStatus,
    FinishedResult,
)

from ddisim_device.config import SimulatorConfig

logger = logging.getLogger(__name__)

CONFIG_DATA_LINK = "configData"
DEPLOYMENT_LINK = "deploymentBase"
CANCEL_LINK = "cancelAction"
CONFIRMATION_LINK = "confirmationBase"

MIN_DOWNLOAD_MS = 100.0
"""Lower bound for the simulated download time of a single artifact."""

_BYTES_PER_MB = 1024 * 1024

SleepFunc = Callable[[float], Awaitable[Any]]
LinkHandler = Callable[[str], Awaitable[None]]


class SimulatorState(str, Enum):
    """Lifecycle state of a simulator.

    Attributes:
        IDLE: Created, never started.
        RUNNING: Polling loop active.
        STOPPED: No further polls will be scheduled.
    """

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class DeploymentPhase(str, Enum):
    """Phase of the deployment currently being processed."""

    DETECTED = "detected"
    PROCEEDING = "proceeding"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    INSTALLING = "installing"
    CLOSED = "closed"


@dataclass
class SimulatorStats:
    """Counters for simulator activity."""

    polls: int = 0
    poll_errors: int = 0
    deployments_succeeded: int = 0
    deployments_failed: int = 0
    cancellations: int = 0
    confirmations: int = 0
    config_updates: int = 0

    def to_dict(self) -> dict[str, int]:
        """Return stats as a dictionary."""
        return {
            "polls": self.polls,
            "poll_errors": self.poll_errors,
            "deployments_succeeded": self.deployments_succeeded,
            "deployments_failed": self.deployments_failed,
            "cancellations": self.cancellations,
            "confirmations": self.confirmations,
            "config_updates": self.config_updates,
        }

    def summary(self) -> str:
        """Return a summary string."""
        return (
            f"Polls: {self.polls} ({self.poll_errors} failed), "
            f"Deployments: {self.deployments_succeeded} ok / {self.deployments_failed} failed, "
            f"Cancels: {self.cancellations}, "
            f"Confirmations: {self.confirmations}"
        )


class _DeviceLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Prefix every record with the controller ID."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['controller_id']}] {msg}", kwargs  # type: ignore[index]


def _now_ms() -> int:
    return int(time.time() * 1000)


class DeviceSimulator:
    """Drives a DdiClient through the device side of the DDI protocol.

    Each instance owns its polling loop and nothing else; several simulators
    can run side by side in one event loop without sharing state.

    Args:
        client: Open DDI client for the simulated device.
        config: Simulator configuration.
        sleep: Coroutine function used for simulated delays, in seconds
            (for testing).

    Example:
        >>> async with DdiClient(client_config) as client:
        ...     simulator = DeviceSimulator(client, SimulatorConfig(auto_confirm=False))
        ...     await simulator.run()  # returns after stop()
    """

    def __init__(
        self,
        client: DdiClient,
        config: SimulatorConfig | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or SimulatorConfig()
        self._sleep = sleep
        self._log = _DeviceLogAdapter(logger, {"controller_id": client.controller_id})

        self._state = SimulatorState.IDLE
        self._polling_interval = self._config.polling_interval
        self._poll_handle: asyncio.TimerHandle | None = None
        self._cycle_task: asyncio.Task[None] | None = None
        self._generation = 0
        self._stopped = asyncio.Event()
        self._stats = SimulatorStats()
        self._deployment_phase: DeploymentPhase | None = None

        # Handled in insertion order, each one independently.
        self._link_handlers: dict[str, LinkHandler] = {
            CONFIG_DATA_LINK: self._handle_config_data,
            DEPLOYMENT_LINK: self._handle_deployment,
            CANCEL_LINK: self._handle_cancel,
            CONFIRMATION_LINK: self._handle_confirmation,
        }

    @property
    def client(self) -> DdiClient:
        """Return the DDI client."""
        return self._client

    @property
    def config(self) -> SimulatorConfig:
        """Return the simulator configuration."""
        return self._config

    @property
    def controller_id(self) -> str:
        """Return the controller ID of the simulated device."""
        return self._client.controller_id

    @property
    def state(self) -> SimulatorState:
        """Return the lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True if the polling loop is active."""
        return self._state == SimulatorState.RUNNING

    @property
    def polling_interval(self) -> int:
        """Return the polling interval currently used for scheduling, in seconds."""
        return self._polling_interval

    @property
    def stats(self) -> SimulatorStats:
        """Return activity counters."""
        return self._stats

    @property
    def deployment_phase(self) -> DeploymentPhase | None:
        """Return the phase of the most recent deployment, or None if there was none."""
        return self._deployment_phase

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the polling loop.

        Runs the first poll cycle immediately, then schedules the next one.
        Calling start() on a running simulator logs a warning and does nothing.
        """
        if self._state == SimulatorState.RUNNING:
            self._log.warning("Simulator is already running")
            return

        # A cycle left over from before stop() must finish first.
        await self.wait_idle()
        if self._state == SimulatorState.RUNNING:
            self._log.warning("Simulator is already running")
            return

        self._state = SimulatorState.RUNNING
        self._generation += 1
        generation = self._generation
        self._stopped.clear()
        self._log.info("Simulator started (polling every %ds)", self._polling_interval)

        self._cycle_task = asyncio.get_running_loop().create_task(self._poll())
        await self._cycle_task
        self._schedule_poll(generation)

    def stop(self) -> None:
        """Stop scheduling poll cycles.

        A cycle that is already in flight, including any simulated download
        or install wait, runs to completion.
        """
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

        self._generation += 1
        self._state = SimulatorState.STOPPED
        self._stopped.set()
        self._log.info("Simulator stopped. %s", self._stats.summary())

    async def run(self) -> None:
        """Start the simulator and return once it has been stopped.

        Waits for an in-flight cycle to finish before returning.
        """
        await self.start()
        await self.wait_stopped()
        await self.wait_idle()

    async def wait_stopped(self) -> None:
        """Wait until stop() is called."""
        await self._stopped.wait()

    async def wait_idle(self) -> None:
        """Wait for the poll cycle currently in flight, if any."""
        task = self._cycle_task
        if task is not None and not task.done():
            await task

    async def poll_once(self) -> None:
        """Run exactly one poll cycle without scheduling another."""
        await self._poll()

    def _is_current(self, generation: int) -> bool:
        return self._state == SimulatorState.RUNNING and generation == self._generation

    def _schedule_poll(self, generation: int) -> None:
        """Arm the single-shot timer for the next cycle.

        Cycles belonging to an earlier start() never rearm, so a restart
        leaves exactly one timer chain.
        """
        if not self._is_current(generation):
            return

        loop = asyncio.get_running_loop()
        self._poll_handle = loop.call_later(
            self._polling_interval, self._on_poll_timer, generation
        )

    def _on_poll_timer(self, generation: int) -> None:
        """Timer callback: spawn the next poll cycle."""
        if not self._is_current(generation):
            return

        self._poll_handle = None
        self._cycle_task = asyncio.get_running_loop().create_task(self._poll_cycle(generation))

    async def _poll_cycle(self, generation: int) -> None:
        await self._poll()
        self._schedule_poll(generation)

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    async def _poll(self) -> None:
        """Run one poll cycle. Never raises for protocol or network failures."""
        self._stats.polls += 1
        try:
            self._log.debug("Polling server...")
            controller_base = await self._client.get_controller_base()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._stats.poll_errors += 1
            self._log.error("Polling failed: %s", exc)
            return

        try:
            self._update_polling_interval(controller_base)

            for name, handler in self._link_handlers.items():
                href = controller_base.href(name)
                if href is not None:
                    await handler(href)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._stats.poll_errors += 1
            self._log.error("Poll cycle failed: %s", exc)
            return

        if not controller_base.has_link(DEPLOYMENT_LINK) and not controller_base.has_link(
            CANCEL_LINK
        ):
            self._log.debug("No pending actions")

    def _update_polling_interval(self, controller_base: ControllerBase) -> None:
        """Adopt the server-advertised polling interval for later cycles."""
        sleep = controller_base.polling_sleep
        if not sleep:
            return

        interval = parse_polling_interval(sleep)
        if interval != self._polling_interval:
            self._log.info("Updating polling interval to %ds (from server)", interval)
            self._polling_interval = interval

    # -------------------------------------------------------------------------
    # Config data
    # -------------------------------------------------------------------------

    async def _handle_config_data(self, href: str) -> None:
        """Send the configured device attributes."""
        try:
            self._log.info("Sending device attributes...")
            await self._client.put_config_data(
                ConfigData(mode=ConfigDataMode.MERGE, data=dict(self._config.device_attributes))
            )
            self._stats.config_updates += 1
            self._log.info("Device attributes sent")
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._log.error("Failed to send config data: %s", exc)

    # -------------------------------------------------------------------------
    # Deployment
    # -------------------------------------------------------------------------

    async def _handle_deployment(self, href: str) -> None:
        action_id = extract_action_id(href, DEPLOYMENT_LINK)
        if action_id is None:
            self._log.warning("Ignoring deploymentBase link without action ID: %s", href)
            return
        await self._run_deployment(action_id)

    async def _run_deployment(self, action_id: str) -> None:
        """Walk one deployment from detection to a closed feedback.

        Success posts proceeding, downloaded and closed/success. Any error
        posts a single best-effort closed/failure and abandons the action.
        """
        self._set_phase(DeploymentPhase.DETECTED)
        self._log.info("Deployment detected! Action ID: %s", action_id)
        try:
            deployment = await self._client.get_deployment_base(action_id)
            self._log_deployment_info(deployment)

            self._set_phase(DeploymentPhase.PROCEEDING)
            await self._send_feedback(
                action_id,
                ExecutionStatus.PROCEEDING,
                FinishedResult.NONE,
                ["Starting deployment..."],
            )

            self._set_phase(DeploymentPhase.DOWNLOADING)
            await self._simulate_download(deployment)

            self._set_phase(DeploymentPhase.DOWNLOADED)
            await self._send_feedback(
                action_id, ExecutionStatus.DOWNLOADED, FinishedResult.NONE, ["Download complete"]
            )

            self._set_phase(DeploymentPhase.INSTALLING)
            self._log.info("Installing... (simulated)")
            await self._sleep(self._config.install_simulation_delay / 1000.0)

            await self._send_feedback(
                action_id, ExecutionStatus.CLOSED, FinishedResult.SUCCESS, ["Installation complete"]
            )
            self._set_phase(DeploymentPhase.CLOSED)
            self._stats.deployments_succeeded += 1
            self._log.info("Deployment %s completed successfully", action_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._set_phase(DeploymentPhase.CLOSED)
            self._stats.deployments_failed += 1
            self._log.error("Deployment %s failed: %s", action_id, exc)
            try:
                await self._send_feedback(
                    action_id,
                    ExecutionStatus.CLOSED,
                    FinishedResult.FAILURE,
                    [f"Deployment failed: {exc}"],
                )
            except Exception as feedback_exc:  # pylint: disable=broad-exception-caught
                self._log.debug("Failure feedback for %s not delivered: %s", action_id, feedback_exc)

    async def _simulate_download(self, deployment: DeploymentBase) -> None:
        """Wait a size-proportional time for every artifact. Nothing is transferred."""
        rate = self._config.download_simulation_rate
        for chunk in deployment.chunks:
            self._log.info("Processing chunk: %s (%s) v%s", chunk.name, chunk.part, chunk.version)

            for artifact in chunk.artifacts:
                size_mb = artifact.size / _BYTES_PER_MB
                download_ms = max(MIN_DOWNLOAD_MS, size_mb * rate)

                self._log.info(
                    "Downloading: %s (%s)", artifact.filename, format_size(artifact.size)
                )
                await self._sleep(download_ms / 1000.0)
                self._log.info("Downloaded: %s", artifact.filename)

    async def _send_feedback(
        self,
        action_id: str,
        execution: ExecutionStatus,
        finished: FinishedResult,
        details: list[str],
    ) -> None:
        self._log.info("Sending feedback: %s", execution.value)
        feedback = ActionFeedback.create(execution, finished, details, timestamp=_now_ms())
        await self._client.post_deployment_feedback(action_id, feedback)

    def _log_deployment_info(self, deployment: DeploymentBase) -> None:
        chunks = deployment.chunks
        self._log.info(
            "  Chunks: %d, Artifacts: %d, Total: %s",
            len(chunks),
            deployment.artifact_count,
            format_size(deployment.total_size),
        )
        for chunk in chunks:
            self._log.debug("  - %s (%s) v%s", chunk.name, chunk.part, chunk.version)

    def _set_phase(self, phase: DeploymentPhase) -> None:
        if phase != self._deployment_phase:
            self._log.debug(
                "Deployment phase: %s -> %s",
                self._deployment_phase.value if self._deployment_phase else "none",
                phase.value,
            )
        self._deployment_phase = phase

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    async def _handle_cancel(self, href: str) -> None:
        """Accept a cancel request. The simulator never refuses one."""
        action_id = extract_action_id(href, CANCEL_LINK)
        if action_id is None:
            self._log.warning("Ignoring cancelAction link without action ID: %s", href)
            return

        try:
            self._log.warning("Cancel action detected! Action ID: %s", action_id)
            cancel = await self._client.get_cancel_action(action_id)
            self._log.info("Canceling action %s", cancel.cancel_action.stop_id)

            await self._client.post_cancel_feedback(
                action_id,
                ActionFeedback.create(
                    ExecutionStatus.CLOSED,
                    FinishedResult.SUCCESS,
                    ["Cancellation accepted"],
                    timestamp=_now_ms(),
                ),
            )
            self._stats.cancellations += 1
            self._log.info("Cancellation acknowledged")
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._log.error("Cancel handling failed: %s", exc)

    # -------------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------------

    async def _handle_confirmation(self, href: str) -> None:
        """Confirm a pending action when auto-confirm is enabled."""
        try:
            confirmation_base = await self._client.get_confirmation_base()

            link_name = next(
                (
                    name
                    for name in confirmation_base.links
                    if name.startswith(CONFIRMATION_LINK) and name != CONFIRMATION_LINK
                ),
                None,
            )
            if link_name is None:
                self._log.debug("No pending confirmation")
                return

            action_id = extract_action_id(
                confirmation_base.links[link_name].href, CONFIRMATION_LINK
            )
            if action_id is None:
                self._log.warning("Ignoring confirmation link without action ID: %s", link_name)
                return

            if not self._config.auto_confirm:
                self._log.info("Action %s awaits confirmation (auto-confirm disabled)", action_id)
                return

            self._log.info("Auto-confirming action %s", action_id)
            await self._client.post_confirmation_feedback(
                action_id,
                ConfirmationFeedback(
                    confirmation=ConfirmationType.CONFIRMED,
                    details=["Auto-confirmed by simulator"],
                ),
            )
            self._stats.confirmations += 1
            self._log.info("Action %s confirmed", action_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._log.error("Confirmation handling failed: %s", exc)
