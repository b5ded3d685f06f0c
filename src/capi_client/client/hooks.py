"""Request/response interceptors for the transport.

* :class:`HookContext` -- mutable dataclass carrying request and response
  state through the hook chain.
* :class:`HookRunner` -- holds the registered request, response and error
  hooks and runs them in registration order.

Hooks form a pipeline: each hook receives the context as left by the
previous one.  Typical uses are adding headers, logging, or rewriting
response bodies before they reach the cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

RequestHook = Callable[["HookContext"], Optional[dict[str, Any]]]
ResponseHook = Callable[["HookContext"], Any]
ErrorHook = Callable[[Exception], None]


@dataclass
class HookContext:
    """Mutable context object threaded through the hook chain.

    Request fields are populated before request hooks run; ``status_code``,
    ``response_headers`` and ``response_body`` before response hooks run.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        url: The fully resolved request URL.
        headers: Request headers dict (mutable).
        params: Query parameters dict (mutable).
        body: Optional JSON request body.
        status_code: HTTP response status code.
        response_headers: Response headers dict.
        response_body: Decoded response body.
    """

    method: str = ""
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    status_code: int = 0
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: Any = None


class HookRunner:
    """Registry and executor for transport hooks.

    Example::

        hooks = HookRunner()
        hooks.use_request(lambda ctx: {"headers": {**ctx.headers, "X-Trace": "1"}})
    """

    def __init__(self) -> None:
        self._request_hooks: list[RequestHook] = []
        self._response_hooks: list[ResponseHook] = []
        self._error_hooks: list[ErrorHook] = []

    def use_request(self, hook: RequestHook) -> RequestHook:
        """Register a request hook.

        The hook may mutate the context in place, or return a dict whose
        ``headers`` / ``params`` entries replace the context values.
        Returns *hook* so the method can be used as a decorator.
        """
        self._request_hooks.append(hook)
        return hook

    def use_response(self, hook: ResponseHook) -> ResponseHook:
        """Register a response hook; its return value replaces the response body."""
        self._response_hooks.append(hook)
        return hook

    def use_error(self, hook: ErrorHook) -> ErrorHook:
        """Register an error hook, called with each transport error."""
        self._error_hooks.append(hook)
        return hook

    def run_pre_request(self, ctx: HookContext) -> HookContext:
        for hook in self._request_hooks:
            result = hook(ctx)
            if isinstance(result, dict):
                ctx.headers = result.get("headers", ctx.headers)
                ctx.params = result.get("params", ctx.params)
        return ctx

    def run_post_response(self, ctx: HookContext) -> HookContext:
        for hook in self._response_hooks:
            ctx.response_body = hook(ctx)
        return ctx

    def run_error(self, error: Exception) -> None:
        """Call every error hook with *error*.

        A failing error hook is logged and skipped so that it never masks
        the original failure.
        """
        for hook in self._error_hooks:
            try:
                hook(error)
            except Exception:
                logger.debug("Error hook %r failed", hook, exc_info=True)
