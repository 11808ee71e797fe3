"""Typed async bindings for the Eclipse hawkBit DDI protocol.

This package provides the device-side client for hawkBit's Direct Device
Integration API, the wire models it exchanges, and a small Management API
client used to bootstrap simulated devices.

Example usage:

    from ddisim_client import DdiClient, DdiClientConfig

    config = DdiClientConfig(
        base_url="http://localhost:8081",
        controller_id="dev-01",
        gateway_token="secret",
    )
    async with DdiClient(config) as client:
        base = await client.get_controller_base()
        for name, link in base.links.items():
            print(name, link.href)
"""

from ddisim_client.client import DdiClient
from ddisim_client.config import DdiClientConfig
from ddisim_client.errors import DdiError, HttpError, RequestError, TransportError
from ddisim_client.management import ManagementClient, ManagementConfig
from ddisim_client.models import (
    ActionFeedback,
    ActivateAutoConfirmation,
    Artifact,
    CancelAction,
    Chunk,
    ConfigData,
    ConfigDataMode,
    ConfirmationAction,
    ConfirmationBase,
    ConfirmationFeedback,
    ConfirmationType,
    ControllerBase,
    DeploymentBase,
    ExecutionStatus,
    FinishedResult,
    Link,
    Target,
)
from ddisim_client.parsing import (
    DEFAULT_POLLING_INTERVAL,
    extract_action_id,
    format_size,
    parse_polling_interval,
)

__all__ = [
    # Client
    "DdiClient",
    "DdiClientConfig",
    "ManagementClient",
    "ManagementConfig",
    # Errors
    "DdiError",
    "HttpError",
    "RequestError",
    "TransportError",
    # Models
    "ActionFeedback",
    "ActivateAutoConfirmation",
    "Artifact",
    "CancelAction",
    "Chunk",
    "ConfigData",
    "ConfigDataMode",
    "ConfirmationAction",
    "ConfirmationBase",
    "ConfirmationFeedback",
    "ConfirmationType",
    "ControllerBase",
    "DeploymentBase",
    "ExecutionStatus",
    "FinishedResult",
    "Link",
    "Target",
    # Helpers
    "DEFAULT_POLLING_INTERVAL",
    "extract_action_id",
    "format_size",
    "parse_polling_interval",
]
