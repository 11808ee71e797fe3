"""Fixtures for tests that talk to a running hawkBit server.

Environment variables:
    HAWKBIT_DDI_URL: DDI endpoint (e.g., http://localhost:8081)
    HAWKBIT_MGMT_URL: Management API endpoint (default: HAWKBIT_DDI_URL)
    HAWKBIT_USERNAME: Management API user (default: admin)
    HAWKBIT_PASSWORD: Management API password (default: admin)
    HAWKBIT_TENANT: Tenant (default: default)

Tests requesting these fixtures are skipped when HAWKBIT_DDI_URL is unset.
"""

from __future__ import annotations

import os
import uuid
from typing import AsyncGenerator

import pytest

from ddisim_client import ManagementClient, ManagementConfig


@pytest.fixture
def ddi_url() -> str:
    """Get the DDI URL from the environment, skipping if absent."""
    url = os.environ.get("HAWKBIT_DDI_URL")
    if not url:
        pytest.skip("HAWKBIT_DDI_URL not set")
    return url


@pytest.fixture
def tenant() -> str:
    """Get the tenant from the environment."""
    return os.environ.get("HAWKBIT_TENANT", "default")


@pytest.fixture
def mgmt_config(ddi_url: str) -> ManagementConfig:
    """Create the Management API configuration."""
    return ManagementConfig(
        base_url=os.environ.get("HAWKBIT_MGMT_URL", ddi_url),
        username=os.environ.get("HAWKBIT_USERNAME", "admin"),
        password=os.environ.get("HAWKBIT_PASSWORD", "admin"),
    )


@pytest.fixture
async def mgmt(mgmt_config: ManagementConfig) -> AsyncGenerator[ManagementClient, None]:
    """Provide an open Management API client."""
    async with ManagementClient(mgmt_config) as client:
        yield client


@pytest.fixture
async def controller_id(mgmt: ManagementClient) -> AsyncGenerator[str, None]:
    """Provide a unique controller ID whose target is deleted afterwards."""
    controller_id = f"ddisim-test-{uuid.uuid4().hex[:8]}"
    yield controller_id
    if await mgmt.target_exists(controller_id):
        await mgmt.delete_target(controller_id)
