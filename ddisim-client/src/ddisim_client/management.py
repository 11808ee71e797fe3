"""Client for the hawkBit Management API target resources.

Used only to bootstrap simulated devices: make sure a target record exists
and obtain its security token, which the DDI client then uses as its
target-token credential.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ddisim_client.errors import DdiError, HttpError
from ddisim_client.models import Target, TargetRequestBody
from ddisim_client.transport import send_request

logger = logging.getLogger(__name__)

TARGETS_PATH = "/rest/v1/targets"

# Statuses on create that usually mean the target is already there.
_EXISTS_STATUSES = frozenset({403, 409})


@dataclass(frozen=True)
class ManagementConfig:
    """Configuration for the Management API.

    Attributes:
        base_url: Management server URL (e.g., "http://localhost:8080").
        username: Basic auth username.
        password: Basic auth password.
        timeout: Request timeout in seconds.
    """

    base_url: str
    username: str
    password: str
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.base_url:
            raise ValueError("base_url is required")
        if not self.username or not self.password:
            raise ValueError("username and password are required")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    def headers(self) -> dict[str, str]:
        """Return the default headers attached to every request."""
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}",
        }


class ManagementClient:
    """Async client for creating and fetching targets.

    Example:
        >>> config = ManagementConfig("http://localhost:8080", "admin", "admin")
        >>> async with ManagementClient(config) as mgmt:
        ...     target = await mgmt.get_or_create_target("dev-01")
        ...     print(target.security_token)
    """

    def __init__(
        self,
        config: ManagementConfig,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Management client.

        Args:
            config: Connection settings.
            client: Optional pre-built httpx client (for testing).
            transport: Optional httpx transport (for testing).
        """
        self._config = config
        self._client = client
        self._transport = transport
        self._owns_client = client is None

    async def __aenter__(self) -> ManagementClient:
        """Async context manager entry."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                timeout=self._config.timeout,
                headers=self._config.headers(),
                transport=self._transport,
            )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with ManagementClient(...) as client:'"
            )
        return self._client

    async def get_target(self, controller_id: str) -> Target:
        """Get a target by controller ID.

        Raises:
            HttpError: 404 if the target does not exist.
            DdiError: If the request fails otherwise.
        """
        response = await send_request(
            self._get_client(), "GET", f"{TARGETS_PATH}/{controller_id}"
        )
        return Target.model_validate(response.json())

    async def create_targets(self, bodies: list[TargetRequestBody]) -> list[Target]:
        """Create several targets in one request.

        Raises:
            DdiError: If the request fails.
        """
        response = await send_request(
            self._get_client(),
            "POST",
            TARGETS_PATH,
            json=[body.to_wire() for body in bodies],
        )
        return [Target.model_validate(item) for item in response.json()]

    async def create_target(
        self, controller_id: str, name: str, description: str | None = None
    ) -> Target:
        """Create a target, falling back to fetching it if it already exists.

        A 409 (conflict) or 403 (forbidden) on create is taken to mean the
        target may already exist, so the existing record is fetched instead.

        Args:
            controller_id: Controller ID of the new target.
            name: Display name.
            description: Optional description.

        Returns:
            The created or existing target.

        Raises:
            DdiError: If creation fails and the fallback fetch fails too; the
                original creation error is raised in that case.
        """
        body = TargetRequestBody(controller_id=controller_id, name=name, description=description)
        try:
            created = await self.create_targets([body])
        except HttpError as exc:
            if exc.status_code not in _EXISTS_STATUSES:
                raise
            logger.warning("Target %s may already exist, fetching...", controller_id)
            try:
                return await self.get_target(controller_id)
            except DdiError:
                raise exc from None

        if not created:
            raise DdiError(f"No target returned from creation of {controller_id}")
        return created[0]

    async def get_or_create_target(
        self,
        controller_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Target:
        """Return the target with this ID, creating it if it does not exist.

        Args:
            controller_id: Controller ID.
            name: Display name for a new target (defaults to the ID).
            description: Description for a new target.

        Raises:
            DdiError: If the target can be neither fetched nor created.
        """
        try:
            return await self.get_target(controller_id)
        except HttpError as exc:
            if exc.status_code != 404:
                raise
        return await self.create_target(controller_id, name or controller_id, description)

    async def delete_target(self, controller_id: str) -> None:
        """Delete a target by controller ID.

        Raises:
            DdiError: If the request fails.
        """
        await send_request(self._get_client(), "DELETE", f"{TARGETS_PATH}/{controller_id}")

    async def target_exists(self, controller_id: str) -> bool:
        """Return True if a target with this controller ID exists.

        Raises:
            DdiError: If the request fails for a reason other than 404.
        """
        try:
            await self.get_target(controller_id)
        except HttpError as exc:
            if exc.status_code == 404:
                return False
            raise
        return True
