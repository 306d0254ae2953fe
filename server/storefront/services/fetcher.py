"""HTTP access to the upstream catalog API."""

import logging
from typing import Any, Callable, Optional

import httpx

from ..errors import FetchError, InvalidPayload

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

TokenProvider = Callable[[], Optional[str]]


def _error_message(response: httpx.Response) -> str:
    """Pull a human readable error out of a failed response body."""
    fallback = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback

    if not isinstance(body, dict):
        return fallback

    error = body.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    if isinstance(error, str) and error:
        return error

    message = body.get("message")
    if isinstance(message, str) and message:
        return message

    return fallback


class RemoteFetcher:
    """Issue JSON requests against a configured base URL.

    The bearer token comes from an injected ``token_provider`` and is looked
    up per request. Requests are never retried.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        default_headers: Optional[dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token_provider = token_provider
        self._default_headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "storefront-catalog-sync",
            **(default_headers or {}),
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, extra: Optional[dict[str, str]]) -> dict[str, str]:
        headers = dict(self._default_headers)
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises FetchError for network failures, timeouts and non-2xx
        statuses, InvalidPayload when a 2xx body is not JSON.
        """
        url = self._url(path)
        try:
            response = await self._client.request(
                method.upper(),
                url,
                json=body,
                headers=self._headers(headers),
                params=params,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out after %.1fs", method, url, self.timeout)
            raise FetchError(None, "request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise FetchError(None, "network error") from e

        if not response.is_success:
            message = _error_message(response)
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, message)
            raise FetchError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise InvalidPayload(f"{method} {url} returned non-JSON body") from e

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request(path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request(path, method="POST", body=body)

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RemoteFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
