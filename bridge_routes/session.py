"""HTTP session management for attestation APIs.

Guardian and Circle attestation endpoints are public and rate limited.
Sessions created here retry transient errors with exponential backoff and
throttle outgoing requests.

The :py:class:`AttestationSession` carries the API URL so that downstream
functions do not need a separate ``api_url`` argument.
"""

import logging

from requests import Session
from requests_ratelimiter import LimiterAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

#: Default number of retries for API requests
DEFAULT_RETRIES = 5

#: Default backoff factor for retries (seconds)
DEFAULT_BACKOFF_FACTOR = 0.5

#: Default request rate.
#:
#: Circle's Iris API blocks clients above 35 requests/second for 5 minutes.
#: Guardian public endpoints are tighter, stay well below both.
DEFAULT_REQUESTS_PER_SECOND = 5.0


class AttestationSession(Session):
    """A :py:class:`requests.Session` subclass that carries the API base URL.

    Use :py:func:`create_attestation_session` to create instances.
    """

    #: API base URL, e.g. ``https://api.wormholescan.io``
    api_url: str

    def __init__(self, api_url: str):
        super().__init__()
        self.api_url = api_url.rstrip("/")

    def __repr__(self) -> str:
        return f"<AttestationSession api_url={self.api_url!r}>"


def create_attestation_session(
    api_url: str,
    retries: int = DEFAULT_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
    pool_maxsize: int = 16,
) -> AttestationSession:
    """Create a session configured for an attestation API.

    The session is configured with:

    - The API URL stored in :py:attr:`AttestationSession.api_url`
    - Rate limiting to respect API throttling
    - Retry logic for 429 and 5xx responses using exponential backoff

    404 is not retried here: "not yet signed" is an expected answer
    handled by the poll loop in :py:mod:`bridge_routes.attestation`.

    :param api_url:
        API base URL.
    :param retries:
        Maximum number of retry attempts for failed requests
    :param backoff_factor:
        Backoff factor for exponential retry delays
    :param requests_per_second:
        Maximum requests per second
    :param pool_maxsize:
        Maximum number of connections to keep in the connection pool.
        Should be at least as large as the number of transfers tracked in parallel.
    :return:
        Configured :py:class:`AttestationSession`
    """
    session = AttestationSession(api_url=api_url)

    retry_policy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        respect_retry_after_header=True,
    )

    adapter = LimiterAdapter(
        per_second=requests_per_second,
        max_retries=retry_policy,
        pool_connections=pool_maxsize,
        pool_maxsize=pool_maxsize,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    logger.debug("Created attestation session for %s, %.1f req/s", api_url, requests_per_second)
    return session
