"""HTTP transport for the Content API.

:class:`Transport` wraps :class:`httpx.AsyncClient` and turns a
``(method, path, query, body)`` tuple into an :class:`ApiResult`:

- **Token injection** -- the access token travels as the ``token`` query
  parameter.
- **Hooks** -- request and response hooks via
  :class:`~capi_client.client.hooks.HookRunner`.
- **Retry with backoff** -- 429, 5xx and network errors are retried up to
  ``max_retries`` times.  The delay doubles per attempt from
  ``retry_base_delay``, is capped at ``retry_max_delay`` and jittered by a
  factor in ``[0.5, 1.0]``.  A numeric ``Retry-After`` header wins.
- **Error mapping** -- failures become typed
  :class:`~capi_client.exceptions.CapiError` instances that are returned on
  :attr:`ApiResult.error`, or raised when ``throw_on_error`` is set.

The transport never caches and never throttles; both are the pipeline's job.
"""

from __future__ import annotations

import asyncio
import copy
import random
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from capi_client.client.hooks import HookContext, HookRunner
from capi_client.exceptions import CapiError, ConnectionError_, error_for_status
from capi_client.models import ClientConfig
from capi_client.output import get_output

RETRY_STATUS_CODES = frozenset({429})

# Stale once the body has been decoded and re-encoded.
_SNAPSHOT_SKIP_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


@dataclass
class ApiResult:
    """Outcome of one API call.

    Exactly one of ``data`` / ``error`` is meaningful: ``data`` holds the
    decoded body of a 2xx response, ``error`` the typed failure otherwise.

    Attributes:
        data: Decoded JSON body (or text) of a successful response.
        error: The failure, when the call did not succeed.
        response: The HTTP response, ``None`` for network failures.
        request: The last HTTP request sent, if any.
    """

    data: Any = None
    error: Optional[CapiError] = None
    response: Optional[httpx.Response] = None
    request: Optional[httpx.Request] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None

    def to_snapshot(self) -> dict[str, Any]:
        """Plain-data copy of a successful result, suitable for caching."""
        headers: dict[str, str] = {}
        status_code = 200
        if self.response is not None:
            status_code = self.response.status_code
            headers = {
                key: value
                for key, value in self.response.headers.items()
                if key.lower() not in _SNAPSHOT_SKIP_HEADERS
            }
        return {"status_code": status_code, "headers": headers, "body": copy.deepcopy(self.data)}

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> ApiResult:
        """Rebuild a result (with a synthetic response) from :meth:`to_snapshot` output."""
        body = snapshot.get("body")
        headers = dict(snapshot.get("headers") or {})
        kwargs: dict[str, Any] = {}
        if isinstance(body, str):
            kwargs["text"] = body
        elif body is not None:
            kwargs["json"] = body
        response = httpx.Response(
            status_code=snapshot.get("status_code", 200),
            headers=headers,
            **kwargs,
        )
        return cls(data=copy.deepcopy(body), response=response)


class Transport:
    """Asynchronous HTTP transport bound to one :class:`ClientConfig`.

    Usable as an async context manager; the underlying
    :class:`httpx.AsyncClient` is otherwise created on first use and
    released by :meth:`aclose`.

    Args:
        config: Client configuration (token, base URL, request settings).
        http_transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.
        hook_runner: Optional request/response hooks.

    Example::

        async with Transport(ClientConfig(access_token="tok")) as transport:
            result = await transport.request("GET", "/v2/cdn/stories")
    """

    def __init__(
        self,
        config: ClientConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        hook_runner: Optional[HookRunner] = None,
    ) -> None:
        self._config = config
        self._http_transport = http_transport
        self._hook_runner = hook_runner
        self._access_token = config.access_token
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Transport:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def base_url(self) -> str:
        return self._config.resolved_base_url

    def set_token(self, token: Optional[str]) -> None:
        """Use *token* for every subsequent request."""
        self._access_token = token

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            settings = self._config.request
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=settings.timeout,
                verify=settings.verify_ssl,
                follow_redirects=True,
                transport=self._http_transport,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    **self._config.headers,
                },
            )
        return self._client

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        throw_on_error: bool = False,
    ) -> ApiResult:
        """Send one request, retrying transient failures.

        Args:
            method: HTTP method.
            path: Path below the base URL, e.g. ``/v2/cdn/stories``.
            query: Query parameters; ``None`` values are dropped.
            body: JSON-serialisable request body.
            headers: Extra request headers.
            throw_on_error: Raise the error instead of returning it.

        Returns:
            The :class:`ApiResult`.

        Raises:
            CapiError: Only when *throw_on_error* is set and the call failed.
        """
        method = method.upper()
        params = {k: v for k, v in (query or {}).items() if v is not None}
        if self._access_token:
            params["token"] = self._access_token
        merged_headers = dict(headers or {})
        url = f"{self.base_url}{path}"

        merged_headers, params = self._run_pre_request_hooks(
            method, url, merged_headers, params, body,
        )

        try:
            response = await self._execute_with_retry(method, path, merged_headers, params, body)
        except ConnectionError_ as exc:
            self._run_error_hooks(exc)
            if throw_on_error:
                raise
            return ApiResult(error=exc)

        data = _decode_body(response)
        data = self._run_post_response_hooks(response, data, method, url, merged_headers, params)

        error = self._map_response_error(response, data)
        if error is not None:
            self._run_error_hooks(error)
            if throw_on_error:
                raise error
            return ApiResult(error=error, response=response, request=response.request)

        return ApiResult(data=data, response=response, request=response.request)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _run_pre_request_hooks(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict[str, Any],
        body: Any,
    ) -> tuple[dict[str, str], dict[str, Any]]:
        if self._hook_runner is None:
            return headers, params

        ctx = HookContext(
            method=method,
            url=url,
            headers=dict(headers),
            params=dict(params),
            body=body,
        )
        ctx = self._hook_runner.run_pre_request(ctx)
        return ctx.headers, ctx.params

    def _run_post_response_hooks(
        self,
        response: httpx.Response,
        data: Any,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict[str, Any],
    ) -> Any:
        if self._hook_runner is None:
            return data

        ctx = HookContext(
            method=method,
            url=url,
            headers=headers,
            params=params,
            status_code=response.status_code,
            response_headers=dict(response.headers),
            response_body=data,
        )
        return self._hook_runner.run_post_response(ctx).response_body

    def _run_error_hooks(self, error: Exception) -> None:
        if self._hook_runner is not None:
            self._hook_runner.run_error(error)

    def _retry_delay(self, attempt: int, response: Optional[httpx.Response] = None) -> float:
        if response is not None:
            retry_after = response.headers.get("retry-after")
            if retry_after is not None:
                try:
                    return max(0.0, float(retry_after))
                except ValueError:
                    pass  # HTTP-date form, use backoff
        settings = self._config.request
        delay = min(settings.retry_base_delay * 2**attempt, settings.retry_max_delay)
        return delay * random.uniform(0.5, 1.0)

    async def _execute_with_retry(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        params: dict[str, Any],
        body: Any,
    ) -> httpx.Response:
        """Send the request, retrying 429, 5xx and network errors.

        Raises:
            ConnectionError_: When network errors persist past the last attempt.
        """
        client = self._ensure_client()
        max_retries = self._config.request.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                kwargs: dict[str, Any] = {
                    "method": method,
                    "url": path,
                    "headers": headers,
                    "params": params,
                }
                if body is not None:
                    kwargs["json"] = body

                response = await client.request(**kwargs)

                retryable = (
                    response.status_code in RETRY_STATUS_CODES or response.status_code >= 500
                )
                if retryable and attempt < max_retries:
                    delay = self._retry_delay(attempt, response)
                    output.debug(
                        f"HTTP {response.status_code}, retrying in {delay:.2f}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = self._retry_delay(attempt)
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay:.2f}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue

                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

        raise ConnectionError_("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response, data: Any) -> Optional[CapiError]:
        """Return a typed error for a non-2xx response, ``None`` otherwise."""
        status = response.status_code
        if status < 400:
            return None

        if isinstance(data, dict):
            msg = data.get("message") or data.get("error") or data.get("detail") or ""
        elif data is not None:
            msg = str(data)[:200]
        else:
            msg = ""
        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix
        return error_for_status(status, full_msg, data)


def _decode_body(response: httpx.Response) -> Any:
    """JSON when possible, text otherwise, ``None`` for an empty body."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
