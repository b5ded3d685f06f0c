"""Bridge from :class:`ApiResult` to the CLI output system.

:func:`format_api_result` prints the status line to stderr and the decoded
body to stdout through :mod:`capi_client.output`, or raises the result's
error so that the CLI exits with the matching exit code.
"""

from __future__ import annotations

from capi_client.client.transport import ApiResult
from capi_client.output import get_output


def status_line(result: ApiResult) -> str:
    """``HTTP 200 OK``-style summary of *result*."""
    response = result.response
    if response is None:
        return "No response"
    return f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip()


def format_api_result(result: ApiResult) -> None:
    """Render *result* for the terminal.

    Raises:
        CapiError: The result's error, when the call failed.
    """
    output = get_output()
    output.info(status_line(result))
    if result.error is not None:
        raise result.error
    if result.data is not None:
        output.format_response(result.data)
