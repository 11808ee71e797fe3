"""Async client for the hawkBit Direct Device Integration (DDI) API.

One coroutine per DDI resource. Each call performs a single authenticated
HTTP exchange and returns a parsed model or raises a
:class:`~ddisim_client.errors.DdiError`. Workflow and retry decisions belong
to the caller.
"""

from __future__ import annotations

from typing import Any

import httpx

from ddisim_client.config import DdiClientConfig
from ddisim_client.models import (
    ActionFeedback,
    ActivateAutoConfirmation,
    Artifact,
    CancelAction,
    ConfigData,
    ConfirmationAction,
    ConfirmationBase,
    ConfirmationFeedback,
    ControllerBase,
    DeploymentBase,
)
from ddisim_client.transport import send_request


class DdiClient:
    """Async HTTP client acting as one device against a DDI endpoint.

    Example:
        >>> config = DdiClientConfig(
        ...     base_url="http://localhost:8081",
        ...     controller_id="dev-01",
        ...     target_token="abc123",
        ... )
        >>> async with DdiClient(config) as client:
        ...     base = await client.get_controller_base()
        ...     print(base.polling_sleep, list(base.links))
    """

    def __init__(
        self,
        config: DdiClientConfig,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the DDI client.

        Args:
            config: Connection and authentication settings.
            client: Optional pre-built httpx client (for testing). It is used
                as-is, so it must already carry base URL and headers.
            transport: Optional httpx transport for the client built on
                context entry (for testing).
        """
        self._config = config
        self._client = client
        self._transport = transport
        self._owns_client = client is None

    @property
    def config(self) -> DdiClientConfig:
        """Return the client configuration."""
        return self._config

    @property
    def controller_id(self) -> str:
        """Return the controller ID this client acts as."""
        return self._config.controller_id

    async def __aenter__(self) -> DdiClient:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def open(self) -> None:
        """Create the underlying HTTP client if none was supplied."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                timeout=self._config.timeout,
                headers=self._config.headers(),
                transport=self._transport,
            )

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with DdiClient(...) as client:'")
        return self._client

    def _path(self, suffix: str = "") -> str:
        return f"{self._config.base_path}{suffix}"

    async def _request(
        self,
        method: str,
        suffix: str = "",
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        return await send_request(
            self._get_client(), method, self._path(suffix), params=params, json=json
        )

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    async def get_controller_base(self) -> ControllerBase:
        """Poll the root resource for pending actions.

        Returns:
            Polling advice and links to every action currently available.

        Raises:
            DdiError: If the request fails.
        """
        response = await self._request("GET")
        return ControllerBase.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Deployment
    # -------------------------------------------------------------------------

    async def get_deployment_base(
        self, action_id: str | int, action_history: int | None = None
    ) -> DeploymentBase:
        """Get the details of a deployment action.

        Args:
            action_id: Action ID from the deploymentBase link.
            action_history: Number of previous feedback messages to include.

        Returns:
            The deployment with its chunks and artifacts.

        Raises:
            DdiError: If the request fails.
        """
        params = {"actionHistory": action_history} if action_history else None
        response = await self._request("GET", f"/deploymentBase/{action_id}", params=params)
        return DeploymentBase.model_validate(response.json())

    async def post_deployment_feedback(
        self, action_id: str | int, feedback: ActionFeedback
    ) -> None:
        """Send feedback for a deployment action.

        Raises:
            DdiError: If the request fails.
        """
        await self._request(
            "POST", f"/deploymentBase/{action_id}/feedback", json=feedback.to_wire()
        )

    async def get_installed_base(
        self, action_id: str | int, action_history: int | None = None
    ) -> DeploymentBase:
        """Get a previously installed action.

        Args:
            action_id: Action ID from the installedBase link.
            action_history: Number of previous feedback messages to include.

        Raises:
            DdiError: If the request fails.
        """
        params = {"actionHistory": action_history} if action_history else None
        response = await self._request("GET", f"/installedBase/{action_id}", params=params)
        return DeploymentBase.model_validate(response.json())

    # -------------------------------------------------------------------------
    # Config data
    # -------------------------------------------------------------------------

    async def put_config_data(self, data: ConfigData) -> None:
        """Upload device attributes.

        Raises:
            DdiError: If the request fails.
        """
        await self._request("PUT", "/configData", json=data.to_wire())

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    async def get_cancel_action(self, action_id: str | int) -> CancelAction:
        """Get the details of a cancel request.

        Raises:
            DdiError: If the request fails.
        """
        response = await self._request("GET", f"/cancelAction/{action_id}")
        return CancelAction.model_validate(response.json())

    async def post_cancel_feedback(self, action_id: str | int, feedback: ActionFeedback) -> None:
        """Send feedback for a cancel request.

        Raises:
            DdiError: If the request fails.
        """
        await self._request(
            "POST", f"/cancelAction/{action_id}/feedback", json=feedback.to_wire()
        )

    # -------------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------------

    async def get_confirmation_base(self) -> ConfirmationBase:
        """Get the confirmation state and links to pending confirmations.

        Raises:
            DdiError: If the request fails.
        """
        response = await self._request("GET", "/confirmationBase")
        return ConfirmationBase.model_validate(response.json())

    async def get_confirmation_action(self, action_id: str | int) -> ConfirmationAction:
        """Get an action waiting for confirmation.

        Raises:
            DdiError: If the request fails.
        """
        response = await self._request("GET", f"/confirmationBase/{action_id}")
        return ConfirmationAction.model_validate(response.json())

    async def post_confirmation_feedback(
        self, action_id: str | int, feedback: ConfirmationFeedback
    ) -> None:
        """Confirm or deny an action.

        Raises:
            DdiError: If the request fails.
        """
        await self._request(
            "POST", f"/confirmationBase/{action_id}/feedback", json=feedback.to_wire()
        )

    async def activate_auto_confirmation(
        self, data: ActivateAutoConfirmation | None = None
    ) -> None:
        """Switch on auto-confirmation for this device.

        Raises:
            DdiError: If the request fails.
        """
        body = data.to_wire() if data is not None else {}
        await self._request("POST", "/confirmationBase/activateAutoConfirm", json=body)

    async def deactivate_auto_confirmation(self) -> None:
        """Switch off auto-confirmation for this device.

        Raises:
            DdiError: If the request fails.
        """
        await self._request("POST", "/confirmationBase/deactivateAutoConfirm")

    # -------------------------------------------------------------------------
    # Artifacts
    # -------------------------------------------------------------------------

    async def get_artifacts(self, module_id: str | int) -> list[Artifact]:
        """List the artifacts of a software module.

        Raises:
            DdiError: If the request fails.
        """
        response = await self._request("GET", f"/softwaremodules/{module_id}/artifacts")
        return [Artifact.model_validate(item) for item in response.json()]

    async def download_artifact(self, module_id: str | int, filename: str) -> bytes:
        """Download an artifact.

        Returns:
            The raw file content.

        Raises:
            DdiError: If the request fails.
        """
        response = await self._request(
            "GET", f"/softwaremodules/{module_id}/artifacts/{filename}"
        )
        return response.content
