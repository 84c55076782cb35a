"""Page fetching for URL imports."""

import logging

import httpx

from place_importer.core.config import settings

logger = logging.getLogger(__name__)

SCRIPT_RENDERED_MESSAGE = "This page appears script-rendered. Try copy/paste."


class FetchError(Exception):
    """The input could not be turned into page content."""


def is_http_url(text: str) -> bool:
    """Whether the input carries an http(s) scheme."""
    lowered = text.strip().lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def parse_url(text: str) -> httpx.URL:
    """Parse an http(s) URL.

    Raises:
        FetchError: If the URL is malformed or has no host
    """
    try:
        url = httpx.URL(text.strip())
    except (httpx.InvalidURL, ValueError) as e:
        raise FetchError("Invalid URL") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise FetchError("Invalid URL")
    return url


def looks_script_rendered(content: str, min_length: int | None = None) -> bool:
    """Short bodies that contain ``<script`` are likely rendered client-side."""
    threshold = min_length if min_length is not None else settings.SCRIPT_RENDERED_MIN_LENGTH
    return len(content.strip()) < threshold and "<script" in content


def get_fetch_headers() -> dict[str, str]:
    """Get headers for page requests.

    Returns:
        Dict with headers including a browser-like User-Agent
    """
    return {"User-Agent": settings.FETCH_USER_AGENT}


class PageFetcher:
    """Downloads page markup over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self.timeout = timeout or settings.FETCH_TIMEOUT

    async def fetch(self, url: str) -> str:
        """Fetch a page body.

        Raises:
            FetchError: On malformed URLs, transport errors and non-2xx
                responses
        """
        parsed = parse_url(url)
        try:
            if self._client is not None:
                response = await self._client.get(parsed, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(
                    headers=get_fetch_headers(),
                    timeout=httpx.Timeout(self.timeout, connect=self.timeout / 3),
                    follow_redirects=True,
                ) as client:
                    response = await client.get(parsed)
        except httpx.TimeoutException as e:
            logger.error(f"Timed out fetching {url}: {e}")
            raise FetchError("The request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error fetching {url}: {e}")
            raise FetchError(f"Could not load page: {e}") from e

        if not response.is_success:
            logger.error(f"Bad response fetching {url}: HTTP {response.status_code}")
            raise FetchError(f"Bad server response (HTTP {response.status_code})")
        return response.text
