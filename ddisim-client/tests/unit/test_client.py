"""Unit tests for the DDI client."""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from ddisim_client.client import DdiClient
from ddisim_client.config import DdiClientConfig
from ddisim_client.errors import DdiError, HttpError, RequestError, TransportError
from ddisim_client.models import (
    ActionFeedback,
    ConfigData,
    ConfigDataMode,
    ConfirmationFeedback,
    ConfirmationType,
    ExecutionStatus,
    FinishedResult,
)

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport:
    """Builds a MockTransport and remembers every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def _ok(payload: object = None) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        if payload is None:
            return httpx.Response(200)
        return httpx.Response(200, json=payload)

    return handler


@pytest.fixture
def config() -> DdiClientConfig:
    """Create a test configuration."""
    return DdiClientConfig(
        base_url="http://hawkbit.test:8081/",
        controller_id="dev-01",
        target_token="tok",
    )


class TestClientLifecycle:
    """Tests for client setup and teardown."""

    def test_not_initialized_raises(self, config: DdiClientConfig) -> None:
        """Test using the client outside its context raises."""
        client = DdiClient(config)

        with pytest.raises(RuntimeError, match="not initialized"):
            client._get_client()  # pylint: disable=protected-access

    def test_controller_id(self, config: DdiClientConfig) -> None:
        """Test the controller ID comes from the configuration."""
        assert DdiClient(config).controller_id == "dev-01"

    async def test_close_releases_owned_client(self, config: DdiClientConfig) -> None:
        """Test leaving the context closes the client it created."""
        recorder = RecordingTransport(_ok({}))
        client = DdiClient(config, transport=recorder.transport)

        async with client:
            await client.get_controller_base()

        with pytest.raises(RuntimeError):
            client._get_client()  # pylint: disable=protected-access

    async def test_injected_client_not_closed(self, config: DdiClientConfig) -> None:
        """Test an injected httpx client is left open."""
        recorder = RecordingTransport(_ok({}))
        http = httpx.AsyncClient(base_url="http://hawkbit.test:8081", transport=recorder.transport)

        async with DdiClient(config, client=http) as client:
            await client.get_controller_base()

        assert not http.is_closed
        await http.aclose()


class TestRequests:
    """Tests for request paths, headers and bodies."""

    async def test_controller_base(self, config: DdiClientConfig) -> None:
        """Test polling the root resource."""
        recorder = RecordingTransport(
            _ok(
                {
                    "config": {"polling": {"sleep": "00:00:30"}},
                    "_links": {"configData": {"href": "http://h/default/controller/v1/dev-01/configData"}},
                }
            )
        )

        async with DdiClient(config, transport=recorder.transport) as client:
            base = await client.get_controller_base()

        request = recorder.last
        assert request.method == "GET"
        assert request.url.path == "/default/controller/v1/dev-01"
        assert request.headers["Authorization"] == "TargetToken tok"
        assert request.headers["Accept"] == "application/json"
        assert base.polling_sleep == "00:00:30"
        assert base.has_link("configData")

    async def test_tenant_in_path(self) -> None:
        """Test the tenant is part of every path."""
        recorder = RecordingTransport(_ok({}))
        config = DdiClientConfig(base_url="http://h", controller_id="c1", tenant="acme")

        async with DdiClient(config, transport=recorder.transport) as client:
            await client.get_controller_base()

        assert recorder.last.url.path == "/acme/controller/v1/c1"
        assert "Authorization" not in recorder.last.headers

    async def test_deployment_base_with_history(self, config: DdiClientConfig) -> None:
        """Test actionHistory is sent when positive."""
        recorder = RecordingTransport(_ok({"id": "42", "deployment": {"chunks": []}}))

        async with DdiClient(config, transport=recorder.transport) as client:
            deployment = await client.get_deployment_base("42", action_history=5)

        assert recorder.last.url.path == "/default/controller/v1/dev-01/deploymentBase/42"
        assert recorder.last.url.params["actionHistory"] == "5"
        assert deployment.id == "42"

    async def test_deployment_base_without_history(self, config: DdiClientConfig) -> None:
        """Test actionHistory is omitted when not requested."""
        recorder = RecordingTransport(_ok({"id": "42", "deployment": {"chunks": []}}))

        async with DdiClient(config, transport=recorder.transport) as client:
            await client.get_deployment_base(42)

        assert "actionHistory" not in recorder.last.url.params

    async def test_deployment_feedback(self, config: DdiClientConfig) -> None:
        """Test deployment feedback body and path."""
        recorder = RecordingTransport(_ok())
        feedback = ActionFeedback.create(
            ExecutionStatus.PROCEEDING, FinishedResult.NONE, ["Starting deployment..."]
        )

        async with DdiClient(config, transport=recorder.transport) as client:
            await client.post_deployment_feedback("7", feedback)

        request = recorder.last
        assert request.method == "POST"
        assert request.url.path == "/default/controller/v1/dev-01/deploymentBase/7/feedback"
        assert json.loads(request.content) == {
            "status": {
                "execution": "proceeding",
                "result": {"finished": "none"},
                "details": ["Starting deployment..."],
            }
        }

    async def test_installed_base(self, config: DdiClientConfig) -> None:
        """Test fetching an installed action."""
        recorder = RecordingTransport(_ok({"id": "3", "deployment": {"chunks": []}}))

        async with DdiClient(config, transport=recorder.transport) as client:
            await client.get_installed_base(3)

        assert recorder.last.url.path == "/default/controller/v1/dev-01/installedBase/3"

    async def test_put_config_data(self, config: DdiClientConfig) -> None:
        """Test uploading device attributes."""
        recorder = RecordingTransport(_ok())

        async with DdiClient(config, transport=recorder.transport) as client:
            await client.put_config_data(
                ConfigData(data={"device.type": "simulator"}, mode=ConfigDataMode.MERGE)
            )

        request = recorder.last
        assert request.method == "PUT"
        assert request.url.path == "/default/controller/v1/dev-01/configData"
        assert json.loads(request.content) == {
            "data": {"device.type": "simulator"},
            "mode": "merge",
        }

    async def test_cancel_action_and_feedback(self, config: DdiClientConfig) -> None:
        """Test cancel fetch and feedback paths."""
        recorder = RecordingTransport(_ok({"id": "9", "cancelAction": {"stopId": "8"}}))

        async with DdiClient(config, transport=recorder.transport) as client:
            cancel = await client.get_cancel_action("9")
            await client.post_cancel_feedback(
                "9", ActionFeedback.create(ExecutionStatus.CLOSED, FinishedResult.SUCCESS)
            )

        assert cancel.cancel_action.stop_id == "8"
        paths = [request.url.path for request in recorder.requests]
        assert paths == [
            "/default/controller/v1/dev-01/cancelAction/9",
            "/default/controller/v1/dev-01/cancelAction/9/feedback",
        ]

    async def test_confirmation_endpoints(self, config: DdiClientConfig) -> None:
        """Test the confirmation resources."""
        responses = {
            "/default/controller/v1/dev-01/confirmationBase": {"autoConfirm": {"active": True}},
            "/default/controller/v1/dev-01/confirmationBase/4": {
                "id": "4",
                "confirmation": {"chunks": []},
            },
        }

        def handler(request: httpx.Request) -> httpx.Response:
            payload = responses.get(request.url.path)
            return httpx.Response(200, json=payload) if payload else httpx.Response(200)

        recorder = RecordingTransport(handler)

        async with DdiClient(config, transport=recorder.transport) as client:
            base = await client.get_confirmation_base()
            action = await client.get_confirmation_action(4)
            await client.post_confirmation_feedback(
                4, ConfirmationFeedback(confirmation=ConfirmationType.DENIED)
            )
            await client.activate_auto_confirmation()
            await client.deactivate_auto_confirmation()

        assert base.auto_confirm.active is True
        assert action.id == "4"
        paths = [request.url.path for request in recorder.requests[2:]]
        assert paths == [
            "/default/controller/v1/dev-01/confirmationBase/4/feedback",
            "/default/controller/v1/dev-01/confirmationBase/activateAutoConfirm",
            "/default/controller/v1/dev-01/confirmationBase/deactivateAutoConfirm",
        ]
        assert json.loads(recorder.requests[2].content) == {
            "confirmation": "denied",
            "details": [],
        }
        assert json.loads(recorder.requests[3].content) == {}

    async def test_artifacts(self, config: DdiClientConfig) -> None:
        """Test listing and downloading artifacts."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/artifacts"):
                return httpx.Response(200, json=[{"filename": "fw.bin", "size": 4}])
            return httpx.Response(200, content=b"\x00\x01\x02\x03")

        recorder = RecordingTransport(handler)

        async with DdiClient(config, transport=recorder.transport) as client:
            artifacts = await client.get_artifacts(12)
            content = await client.download_artifact(12, "fw.bin")

        assert [artifact.filename for artifact in artifacts] == ["fw.bin"]
        assert content == b"\x00\x01\x02\x03"
        assert recorder.last.url.path == (
            "/default/controller/v1/dev-01/softwaremodules/12/artifacts/fw.bin"
        )


class TestErrors:
    """Tests for failure classification."""

    async def test_http_error_uses_server_message(self, config: DdiClientConfig) -> None:
        """Test a non-2xx status carries the ExceptionInfo message."""
        recorder = RecordingTransport(
            lambda request: httpx.Response(
                404,
                json={
                    "exceptionClass": "EntityNotFoundException",
                    "errorCode": "hawkbit.server.error.repo.entitiyNotFound",
                    "message": "Action 42 not found",
                },
            )
        )

        async with DdiClient(config, transport=recorder.transport) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.get_deployment_base("42")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Action 42 not found"
        assert str(exc_info.value) == "HTTP 404: Action 42 not found"

    async def test_http_error_falls_back_to_reason(self, config: DdiClientConfig) -> None:
        """Test a non-2xx status without a JSON body uses the reason phrase."""
        recorder = RecordingTransport(lambda request: httpx.Response(503, text="down"))

        async with DdiClient(config, transport=recorder.transport) as client:
            with pytest.raises(HttpError) as exc_info:
                await client.get_controller_base()

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Service Unavailable"

    async def test_timeout_is_transport_error(self, config: DdiClientConfig) -> None:
        """Test a read timeout maps to TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        recorder = RecordingTransport(handler)

        async with DdiClient(config, transport=recorder.transport) as client:
            with pytest.raises(TransportError):
                await client.get_controller_base()

    async def test_connect_error_is_request_error(self, config: DdiClientConfig) -> None:
        """Test a refused connection maps to RequestError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        recorder = RecordingTransport(handler)

        async with DdiClient(config, transport=recorder.transport) as client:
            with pytest.raises(RequestError):
                await client.put_config_data(ConfigData(data={}))

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectTimeout("connect timed out"),
            httpx.PoolTimeout("no free connection"),
        ],
    )
    async def test_unsent_timeout_is_request_error(
        self, config: DdiClientConfig, error: httpx.TimeoutException
    ) -> None:
        """Test a timeout before the request was sent maps to RequestError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        recorder = RecordingTransport(handler)

        async with DdiClient(config, transport=recorder.transport) as client:
            with pytest.raises(RequestError) as exc_info:
                await client.get_controller_base()

        assert not isinstance(exc_info.value, TransportError)

    async def test_errors_share_base_class(self, config: DdiClientConfig) -> None:
        """Test every failure can be caught as DdiError."""
        recorder = RecordingTransport(lambda request: httpx.Response(500))

        async with DdiClient(config, transport=recorder.transport) as client:
            with pytest.raises(DdiError):
                await client.get_cancel_action(1)
