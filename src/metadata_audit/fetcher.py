"""Page fetcher with bounded redirect following and per-request timeouts."""

import asyncio
import logging
from typing import Optional, Union
from urllib.parse import urljoin

import httpx

from metadata_audit.models import FetchError, FetchErrorKind, FetchResult
from metadata_audit.constants import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_USER_AGENT,
    EXPONENTIAL_BACKOFF_BASE,
    INITIAL_BACKOFF_DELAY_SECONDS,
    MAX_BACKOFF_DELAY_SECONDS,
)

logger = logging.getLogger(__name__)


class PageFetcher:
    """Fetches one URL at a time over a shared httpx.AsyncClient.

    Redirects are followed by hand so that relative Location values, loops
    and the hop limit are all handled here rather than inside httpx.
    Failures are returned as FetchError values, never raised.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        backoff_delay: float = INITIAL_BACKOFF_DELAY_SECONDS,
    ):
        """Initialize the fetcher.

        Args:
            client: Async HTTP client; must not follow redirects itself
            timeout: Timeout in seconds for each request, applied per redirect hop
            max_redirects: Maximum redirect hops before giving up
            max_retries: Extra attempts for timeouts and network errors
            user_agent: User-Agent header sent with every request
            backoff_delay: Initial delay before the first retry (seconds)
        """
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")

        self.client = client
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.max_retries = max_retries
        self.backoff_delay = backoff_delay
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    @staticmethod
    def create_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
        """Build a client suitable for this fetcher."""
        return httpx.AsyncClient(follow_redirects=False, transport=transport)

    async def fetch(self, url: str) -> Union[FetchResult, FetchError]:
        """Fetch a URL, following redirects, with optional bounded retries.

        The timeout applies to each hop separately, so a single attempt can
        take up to (max_redirects + 1) x timeout seconds.

        Args:
            url: Absolute URL to fetch

        Returns:
            FetchResult on any HTTP response (including 4xx/5xx), otherwise
            a FetchError describing the timeout, network error or redirect loop
        """
        outcome: Union[FetchResult, FetchError, None] = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = min(
                    self.backoff_delay * EXPONENTIAL_BACKOFF_BASE ** (attempt - 1),
                    MAX_BACKOFF_DELAY_SECONDS,
                )
                logger.info(f"Retrying {url} in {delay:.1f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)

            outcome = await self._fetch_once(url)

            # redirect loops are never retried
            if isinstance(outcome, FetchResult) or outcome.kind == FetchErrorKind.REDIRECT_LOOP:
                return outcome

        return outcome

    async def _fetch_once(self, url: str) -> Union[FetchResult, FetchError]:
        current = url
        chain = [url]

        for _ in range(self.max_redirects + 1):
            logger.info(f"GET {current}")
            try:
                response = await asyncio.wait_for(
                    self.client.get(
                        current,
                        headers=self.headers,
                        timeout=self.timeout,
                        follow_redirects=False,
                    ),
                    timeout=self.timeout,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                logger.warning(f"Timeout fetching {current} (>{self.timeout}s)")
                return FetchError(url=url, kind=FetchErrorKind.TIMEOUT, message="Request timeout")
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                message = str(e) or type(e).__name__
                logger.warning(f"Network error fetching {current}: {message}")
                return FetchError(url=url, kind=FetchErrorKind.NETWORK, message=message)

            location = response.headers.get("location")
            if 300 <= response.status_code < 400 and location:
                try:
                    next_url = urljoin(current, location)
                except ValueError as e:
                    logger.warning(f"Invalid redirect from {current} to {location!r}: {e}")
                    return FetchError(
                        url=url,
                        kind=FetchErrorKind.NETWORK,
                        message=f"Invalid redirect location {location!r}: {e}",
                    )
                logger.info(f"Redirecting from {current} to {next_url}")
                if next_url in chain:
                    return FetchError(
                        url=url,
                        kind=FetchErrorKind.REDIRECT_LOOP,
                        message=f"Redirect loop at {next_url}",
                    )
                chain.append(next_url)
                current = next_url
                continue

            return FetchResult(
                final_url=current,
                status_code=response.status_code,
                headers={name.lower(): value for name, value in response.headers.items()},
                body=response.text,
                redirect_chain=chain if len(chain) > 1 else [],
            )

        return FetchError(
            url=url,
            kind=FetchErrorKind.REDIRECT_LOOP,
            message=f"Exceeded {self.max_redirects} redirects",
        )
