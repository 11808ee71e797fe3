"""Configuration for DDI client connections."""

from __future__ import annotations

import base64
from dataclasses import dataclass


@dataclass(frozen=True)
class DdiClientConfig:
    """Configuration for talking to a hawkBit DDI endpoint as one device.

    Exactly one authentication scheme is used, chosen by priority:
    Basic credentials (username and password), then gateway token, then
    target token.

    Attributes:
        base_url: DDI server URL (e.g., "http://localhost:8081").
        controller_id: Controller ID of the simulated device.
        tenant: Tenant name.
        username: Optional Basic auth username.
        password: Optional Basic auth password.
        gateway_token: Optional tenant-wide gateway security token.
        target_token: Optional per-device security token.
        timeout: Request timeout in seconds.
    """

    base_url: str
    controller_id: str
    tenant: str = "default"
    username: str | None = None
    password: str | None = None
    gateway_token: str | None = None
    target_token: str | None = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.base_url:
            raise ValueError("base_url is required")
        if not self.controller_id:
            raise ValueError("controller_id is required")
        if not self.tenant:
            raise ValueError("tenant is required")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def base_path(self) -> str:
        """Return the controller resource path, e.g. "/default/controller/v1/dev-01"."""
        return f"/{self.tenant}/controller/v1/{self.controller_id}"

    @property
    def auth_scheme(self) -> str | None:
        """Return the name of the scheme that will be used, or None."""
        if self.username and self.password:
            return "Basic"
        if self.gateway_token:
            return "GatewayToken"
        if self.target_token:
            return "TargetToken"
        return None

    def authorization_header(self) -> str | None:
        """Build the Authorization header value.

        Returns:
            Header value for the highest-priority credential supplied, or
            None when no credential is configured.
        """
        scheme = self.auth_scheme
        if scheme == "Basic":
            raw = f"{self.username}:{self.password}".encode("utf-8")
            return f"Basic {base64.b64encode(raw).decode('ascii')}"
        if scheme == "GatewayToken":
            return f"GatewayToken {self.gateway_token}"
        if scheme == "TargetToken":
            return f"TargetToken {self.target_token}"
        return None

    def headers(self) -> dict[str, str]:
        """Return the default headers attached to every request."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        authorization = self.authorization_header()
        if authorization is not None:
            headers["Authorization"] = authorization
        return headers
