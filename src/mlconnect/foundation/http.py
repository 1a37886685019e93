"""Shared HTTP utilities for connection pooling and session management.

This module provides the pooled `requests.Session` used by every connector
executor and by the artifact downloader. Remote invocations are never retried
at the transport level, so the default session mounts adapters with retries
disabled; callers that want retries wrap the invocation themselves (see
`mlconnect.foundation.retry`).
"""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# Default pool configuration
DEFAULT_POOL_CONNECTIONS = 10
DEFAULT_POOL_MAXSIZE = 20

# Default retry configuration (only used when max_retries > 0)
DEFAULT_BACKOFF_FACTOR = 1.0
DEFAULT_STATUS_FORCELIST = [429, 500, 502, 503, 504]
DEFAULT_ALLOWED_METHODS = ["GET"]


def create_session(
    pool_connections: int = DEFAULT_POOL_CONNECTIONS,
    pool_maxsize: int = DEFAULT_POOL_MAXSIZE,
    max_retries: int = 0,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    status_forcelist: list[int] | None = None,
    allowed_methods: list[str] | None = None,
) -> requests.Session:
    """Create a pooled requests session.

    The returned session is safe to share between threads issuing independent
    requests; urllib3 hands every request its own pooled connection.

    Args:
        pool_connections: Number of host pools to cache (default: 10).
        pool_maxsize: Maximum connections kept per host pool (default: 20).
        max_retries: Transport-level retries. Defaults to 0 so that a failed
            call surfaces immediately to the caller.
        backoff_factor: Base backoff time in seconds when retries are enabled.
        status_forcelist: HTTP status codes that trigger a retry when retries
            are enabled (default: [429, 500, 502, 503, 504]).
        allowed_methods: HTTP methods allowed to retry (default: ["GET"]).

    Returns:
        Configured requests.Session with adapters mounted for http and https.

    Example:
        ```python
        from mlconnect.foundation.http import create_session

        session = create_session(pool_maxsize=50)
        response = session.post("https://api.example.com/v1/chat", data="{}", timeout=(5, 60))
        ```
    """
    if status_forcelist is None:
        status_forcelist = DEFAULT_STATUS_FORCELIST
    if allowed_methods is None:
        allowed_methods = DEFAULT_ALLOWED_METHODS

    session = requests.Session()
    if max_retries > 0:
        retry_strategy: Retry | int = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=status_forcelist,
            allowed_methods=allowed_methods,
            raise_on_status=False,
        )
    else:
        retry_strategy = 0
    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=retry_strategy,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
