"""Content-version (``cv``) helpers.

The Content API stamps published responses with ``cv``, the version of the
dataset the response was computed from.  The pipeline echoes the last seen
value on later published reads so the CDN serves a consistent snapshot, and
flushes its cache whenever the value moves.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from capi_client.request import is_cdn_path, is_draft_request

if TYPE_CHECKING:
    from capi_client.client.transport import ApiResult

Cv = Union[int, float]


def _as_cv(value: Any) -> Optional[Cv]:
    # bool is an int subclass but never a version stamp
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return None


def extract_cv(result: Optional[ApiResult]) -> Optional[Cv]:
    """Return the numeric ``cv`` carried by a successful result, if any.

    Error results, non-dict bodies and non-numeric ``cv`` values all yield
    ``None``.
    """
    if result is None or result.error is not None:
        return None
    data = result.data
    if not isinstance(data, Mapping):
        return None
    return _as_cv(data.get("cv"))


def apply_cv_to_query(
    path: str,
    query: Mapping[str, Any],
    cv: Optional[Cv],
) -> Mapping[str, Any]:
    """Add the held ``cv`` to a published CDN query.

    The query is returned unchanged (the same object) for non-CDN paths,
    draft reads, when no ``cv`` is held, or when the caller already chose a
    ``cv``.
    """
    if not is_cdn_path(path) or is_draft_request(query):
        return query
    if cv is None or query.get("cv") is not None:
        return query
    return {**query, "cv": cv}
