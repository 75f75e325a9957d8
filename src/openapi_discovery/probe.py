"""
Availability probing and specification retrieval for discovered services.

The liveness probe and the spec fetch use independent HTTP clients, each with
an explicit timeout, so a hung service cannot stall a reconcile worker.
"""

import logging

import httpx

from .errors import SpecFetchError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 10.0


class AvailabilityProber:
    """Checks service availability and fetches OpenAPI specifications."""

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        probe_client: httpx.AsyncClient | None = None,
        fetch_client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self._probe_client = probe_client or httpx.AsyncClient(timeout=timeout)
        self._fetch_client = fetch_client or httpx.AsyncClient(timeout=timeout)

    async def probe(self, url: str) -> bool:
        """Return True iff a GET on ``url`` answers with a success status."""
        try:
            response = await self._probe_client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to check API availability for {url}: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"API availability check for {url} returned status {response.status_code}"
            )
            return False

        return True

    async def fetch_spec(self, url: str) -> str:
        """Fetch the specification body from ``url``.

        Raises:
            SpecFetchError: On transport errors or a non-success status
        """
        try:
            response = await self._fetch_client.get(url)
        except httpx.HTTPError as e:
            raise SpecFetchError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise SpecFetchError(url, f"HTTP error: {response.status_code}")

        return response.text

    async def aclose(self) -> None:
        """Close both HTTP clients."""
        await self._probe_client.aclose()
        await self._fetch_client.aclose()

    async def __aenter__(self) -> "AvailabilityProber":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
