"""
Cache-aware page fetcher.

Serves a resource from the CacheStore when it is fresh; otherwise downloads
it, retrying when the armory answers with an empty body, and writes the
result back to the cache.

Known behaviour: if every retry comes back empty, the empty body is still
cached and returned. A flaky armory can therefore leave an empty page in
the cache until that entry expires.
"""

import logging
import time
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from .cache import CacheStore
from .config import FetchPolicy
from .exceptions import FetchError, InvalidArgumentError, InvalidKeyError, NetworkError
from .logger import get_module_logger

logger = get_module_logger("fetcher")

Transport = Callable[[str], bytes]


class HTTPTransport:
    """
    Plain HTTP GET returning the response body.

    Connection problems raise NetworkError. A non-2xx answer is returned as
    an empty body so it goes through the same retry path as the armory's
    blank pages.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 20.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except RequestException as e:
            logger.error(f"GET {url} failed: {e}")
            raise NetworkError(
                f"Request failed: {e}",
                url=url,
                details={"error": str(e)}
            ) from e

        if not response.ok:
            logger.warning(f"GET {url} returned HTTP {response.status_code}")
            return b""
        return response.content


class Fetcher:
    """Resolves URLs to page bytes, consulting the cache first."""

    def __init__(
        self,
        cache: CacheStore,
        policy: Optional[FetchPolicy] = None,
        transport: Optional[Transport] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.cache = cache
        self.policy = policy or FetchPolicy()
        self.transport = transport or HTTPTransport()
        self.sleep = sleep
        # Number of transport calls made, retries included
        self.network_calls = 0

    def _download(self, url: str, policy: FetchPolicy) -> bytes:
        """
        GET ``url``, retrying empty bodies per ``policy``.

        Transport errors are not retried. When every attempt comes back
        empty the last (empty) body is returned instead of raising.
        """
        retrying = Retrying(
            retry=retry_if_result(lambda content: not content),
            stop=stop_after_attempt(policy.max_retries + 1),
            wait=wait_fixed(policy.retry_backoff),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        return retrying(self._get, url)

    def _get(self, url: str) -> bytes:
        self.network_calls += 1
        return self.transport(url) or b""

    def fetch(self, url: str, key: str, policy: Optional[FetchPolicy] = None) -> bytes:
        """
        Return the page at ``url``, cached under ``key``.

        Args:
            url: Page to download on a cache miss
            key: Cache key of the resource
            policy: Overrides the fetcher's default policy for this call

        Returns:
            Page bytes (possibly empty if the armory kept answering blank)

        Raises:
            InvalidArgumentError: empty url or key
            FetchError: the request failed and no cached copy exists
        """
        if not url:
            raise InvalidArgumentError("url")
        if not key:
            raise InvalidKeyError()
        policy = policy or self.policy

        if self.cache.is_fresh(key, policy):
            cached = self.cache.read(key)
            if cached is not None:
                return cached

        logger.info(f"Fetching {url}")
        try:
            content = self._download(url, policy)
        except NetworkError as e:
            stale = self.cache.read(key)
            if stale:
                logger.warning(f"Serving stale cache for {key}: {e.message}")
                return stale
            raise FetchError(
                f"Could not fetch {url} and nothing is cached under '{key}'",
                url=url,
                key=key,
                details={"error": e.message}
            ) from e

        if not content:
            logger.warning(f"Caching empty response for {key} after {policy.max_retries} retries")
        self.cache.write(key, content)
        return content
