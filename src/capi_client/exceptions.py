"""Exception hierarchy for capi_client.

All exceptions inherit from :class:`CapiError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`capi_client.exit_codes`.
HTTP failures additionally carry the response ``status_code`` and decoded
``body`` so callers inspecting an :class:`~capi_client.client.transport.ApiResult`
can branch on them without re-parsing the response.

Transport failures are *returned* on ``ApiResult.error`` by default and only
raised when the client is configured with ``throw_on_error=True``.

Subclass hierarchy::

    CapiError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- HTTPError           (exit 1)
    |   +-- AuthError       (exit 3)
    |   +-- NotFoundError   (exit 4)
    |   +-- RateLimitError  (exit 7)
    |   +-- ClientError     (exit 8)
    |   +-- ServerError     (exit 5)
    +-- ConnectionError_    (exit 6)
"""

from __future__ import annotations

from typing import Any, Optional

from capi_client.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CLIENT_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_RATE_LIMITED,
    EXIT_SERVER_ERROR,
)


class CapiError(Exception):
    """Base exception for all capi_client errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`capi_client.exit_codes`. The CLI entry point
    catches this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CapiError):
    """Raised for invalid CLI arguments or malformed query options."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CapiError):
    """Raised for configuration problems (invalid JSON, unresolvable token source)."""

    exit_code = EXIT_GENERIC_FAILURE


class HTTPError(CapiError):
    """An HTTP response outside the 2xx range.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code of the failed response.
        body: The decoded response body (JSON value or text), if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        body: Optional[Any] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthError(HTTPError):
    """Raised when the access token is missing, invalid or lacks permission (401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(HTTPError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class RateLimitError(HTTPError):
    """Raised when the API still answers HTTP 429 after all retries."""

    exit_code = EXIT_RATE_LIMITED


class ClientError(HTTPError):
    """Raised for any other HTTP 4xx response."""

    exit_code = EXIT_CLIENT_ERROR


class ServerError(HTTPError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(CapiError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


def error_for_status(status_code: int, message: str, body: Any = None) -> HTTPError:
    """Build the :class:`HTTPError` subclass matching *status_code*."""
    if status_code in (401, 403):
        return AuthError(message, status_code, body)
    if status_code == 404:
        return NotFoundError(message, status_code, body)
    if status_code == 429:
        return RateLimitError(message, status_code, body)
    if status_code >= 500:
        return ServerError(message, status_code, body)
    return ClientError(message, status_code, body)
