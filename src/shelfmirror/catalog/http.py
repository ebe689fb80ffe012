# ABOUTME: GraphQL client for the Hardcover catalog API.
# ABOUTME: Provides rate limiting, 429 backoff, error-array detection, and injectable transport.

import logging
import time
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.hardcover.app/v1/graphql"


class CatalogFetchError(Exception):
    """Raised when a catalog request fails or returns GraphQL errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class CatalogClient(Protocol):
    """Protocol for GraphQL document execution against the catalog."""

    def execute(
        self, query: str, variables: dict[str, Any] | None = None, *, attempts: int = 1
    ) -> dict[str, Any]: ...


def bearer(api_key: str) -> str:
    key = api_key.strip()
    return key if key.lower().startswith("bearer ") else f"Bearer {key}"


class HardcoverClient:
    """GraphQL client with rate limiting and rate-limit retry.

    Wraps httpx.Client. Only HTTP 429 is retried, and only when the caller
    asks for more than one attempt; every other failure raises at once.
    """

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        api_key: str | None = None,
        min_request_interval: float = 0.0,
        retry_delay: float = 1.5,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"User-Agent": "shelfmirror/0.1.0"}
        if api_key:
            headers["Authorization"] = bearer(api_key)
        client_kwargs: dict[str, Any] = {"headers": headers, "timeout": timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self._endpoint = endpoint
        self._min_interval = min_request_interval
        self._retry_delay = retry_delay
        self._last_request_time: float = 0.0

    def execute(
        self, query: str, variables: dict[str, Any] | None = None, *, attempts: int = 1
    ) -> dict[str, Any]:
        """POST a GraphQL document and return its ``data`` object.

        Args:
            query: The GraphQL document.
            variables: Optional variables for the document.
            attempts: Total tries allowed when the server answers 429.

        Returns:
            The response's ``data`` object (empty dict when null).

        Raises:
            CatalogFetchError: On transport errors, non-2xx responses, bad JSON,
                or a non-empty ``errors`` array.
        """
        attempts = max(attempts, 1)
        payload = {"query": query, "variables": variables or {}}
        for attempt in range(attempts):
            self._rate_limit()
            try:
                response = self._client.post(self._endpoint, json=payload)
            except httpx.HTTPError as exc:
                raise CatalogFetchError(f"Request failed: {self._endpoint}: {exc}") from exc

            if response.status_code == 429 and attempt < attempts - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    "HTTP 429 from catalog, retrying in %.1fs (attempt %d/%d)",
                    delay,
                    attempt + 1,
                    attempts,
                )
                time.sleep(delay)
                continue

            if not response.is_success:
                raise CatalogFetchError(
                    f"HTTP {response.status_code} from {self._endpoint}",
                    status_code=response.status_code,
                )

            try:
                body = response.json()
            except ValueError as exc:
                raise CatalogFetchError("Catalog returned invalid JSON") from exc

            errors = body.get("errors") if isinstance(body, dict) else None
            if errors:
                first = errors[0] if isinstance(errors, list) else errors
                message = first.get("message") if isinstance(first, dict) else str(first)
                raise CatalogFetchError(
                    f"GraphQL error: {message}", status_code=response.status_code
                )
            data = body.get("data") if isinstance(body, dict) else None
            return data if isinstance(data, dict) else {}

        raise CatalogFetchError(
            f"HTTP 429 from {self._endpoint} after {attempts} attempts", status_code=429
        )

    def close(self) -> None:
        self._client.close()

    def _rate_limit(self) -> None:
        """Sleep if needed to maintain minimum interval between requests."""
        if self._min_interval <= 0:
            return
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if elapsed < self._min_interval and self._last_request_time > 0:
            time.sleep(self._min_interval - elapsed)
        self._last_request_time = time.monotonic()
