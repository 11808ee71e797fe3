"""Exception types for ddisim-client.

Every failed exchange with a hawkBit server is reported as one of the
exceptions below. Callers that do not care about the failure class can catch
DdiError.

Exception hierarchy:
    DdiError (base)
    +-- HttpError: Server answered with a non-success status
    +-- TransportError: Request was sent but no response arrived
    +-- RequestError: Request could not be built or sent
"""

from __future__ import annotations


class DdiError(Exception):
    """Base exception for all ddisim client errors."""


class HttpError(DdiError):
    """Raised when the server answers with a non-2xx status.

    Attributes:
        status_code: HTTP status code returned by the server.
        message: Server-supplied message (ExceptionInfo.message) or the
            reason phrase when the body carries none.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class TransportError(DdiError):
    """Raised when a request was sent but no response was received.

    Covers read/write timeouts and connections dropped mid-exchange.
    """


class RequestError(DdiError):
    """Raised when a request could not be built or sent.

    Covers invalid URLs, refused connections and protocol violations
    detected before any response was read.
    """
