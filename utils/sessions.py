import time
from functools import wraps

import requests

USER_AGENT = "mirrorbot/1.0"


def retry(max_attempts=3, backoff_seconds=1):
    """Decorator for retrying transient network failures with exponential backoff.

    Only connection-level errors are retried; HTTP error statuses are raised immediately.

    Args:
        max_attempts (int): Maximum number of attempts
        backoff_seconds (int): Base time to wait between attempts

    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempts = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except (requests.ConnectionError, requests.Timeout):
                    attempts += 1
                    if attempts >= max_attempts:
                        raise
                    time.sleep(backoff_seconds * (2 ** (attempts - 1)))

        return wrapper

    return decorator


class SessionFactory:
    """A reusable factory for a single shared `requests` session.

    Used to download source images before they are re-uploaded to a destination
    platform. Keeping one session gives connection pooling across a cycle's images.

    Attributes:
        session (requests.Session): The managed session, created on first use.
        timeout (float): Per-request timeout in seconds.

    """

    def __init__(self, timeout=20.0):
        self.session = None
        self.timeout = timeout

    def get(self) -> requests.Session:
        """Returns the managed session, creating it on first use."""
        if self.session is None:
            self.session = requests.Session()
            self.session.headers.update({"User-Agent": USER_AGENT})
        return self.session

    @retry()
    def fetch_bytes(self, url: str) -> bytes:
        """Download `url` and return the body.

        Raises:
            requests.HTTPError: On a non-2xx response.

        """
        response = self.get().get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.content
