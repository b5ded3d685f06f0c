"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~capi_client.exceptions.CapiError` subclass.
Shell wrappers around the ``capi`` command can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ capi stories get home
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the access token was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The access token was missing or rejected (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested story, datasource or path was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The Content API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_RATE_LIMITED = 7
"""The Content API kept answering HTTP 429 after all retries."""

EXIT_CLIENT_ERROR = 8
"""The Content API rejected the request with another HTTP 4xx status."""
