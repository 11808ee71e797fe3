"""Single HTTP exchange with error classification.

Both the DDI and the Management clients route every request through
:func:`send_request`, which turns httpx failures into the ddisim error
taxonomy and logs them once at the client boundary. Nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ddisim_client.errors import HttpError, RequestError, TransportError
from ddisim_client.models import ExceptionInfo

logger = logging.getLogger(__name__)

# Timeouts raised before the request left the client. Must be caught before
# _NO_RESPONSE_ERRORS, which includes their TimeoutException base.
_NOT_SENT_TIMEOUTS = (httpx.ConnectTimeout, httpx.PoolTimeout)

# Failures raised after the request left the client: the server never answered.
_NO_RESPONSE_ERRORS = (
    httpx.TimeoutException,
    httpx.ReadError,
    httpx.WriteError,
    httpx.CloseError,
    httpx.RemoteProtocolError,
)


def server_message(response: httpx.Response) -> str:
    """Extract the server-supplied error message from a response.

    Args:
        response: A non-success response.

    Returns:
        ``ExceptionInfo.message`` when the body carries one, otherwise the
        HTTP reason phrase.
    """
    try:
        info = ExceptionInfo.model_validate(response.json())
    except (ValueError, ValidationError):
        info = None
    if info is not None and info.message:
        return info.message
    return response.reason_phrase or f"status {response.status_code}"


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json: Any = None,
) -> httpx.Response:
    """Perform one request and classify any failure.

    Args:
        client: HTTP client carrying base URL, headers and timeout.
        method: HTTP method.
        url: Path relative to the client's base URL.
        params: Optional query parameters.
        json: Optional JSON body.

    Returns:
        The successful (2xx) response.

    Raises:
        HttpError: If the server answered with a non-success status.
        TransportError: If the request was sent but no response arrived.
        RequestError: If the request could not be built or sent.
    """
    try:
        response = await client.request(method, url, params=params, json=json)
    except _NOT_SENT_TIMEOUTS as exc:
        logger.error("Request not sent: %s %s: %s", method, url, exc)
        raise RequestError(f"Request failed for {method} {url}: {exc}") from exc
    except _NO_RESPONSE_ERRORS as exc:
        logger.error("No response received: %s %s: %s", method, url, exc)
        raise TransportError(f"No response received for {method} {url}: {exc}") from exc
    except (httpx.RequestError, httpx.InvalidURL) as exc:
        logger.error("Request error: %s %s: %s", method, url, exc)
        raise RequestError(f"Request failed for {method} {url}: {exc}") from exc

    if response.is_success:
        return response

    message = server_message(response)
    logger.error("HTTP %d: %s", response.status_code, message)
    raise HttpError(response.status_code, message)
