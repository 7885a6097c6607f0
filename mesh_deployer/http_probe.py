"""
HTTP health probe used for readiness checks.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class HttpProbe:
    """Issues single GET requests and reports the status code."""

    def __init__(self, timeout: float = 15.0):
        self._client = httpx.AsyncClient(timeout=timeout)

    async def ping(self, url: str) -> int:
        """
        GET the URL once.

        Returns:
            HTTP status code

        Raises:
            httpx.HTTPError: On transport failures and timeouts
        """
        response = await self._client.get(url)
        logger.debug(f"Probe {url} returned {response.status_code}")
        return response.status_code

    async def close(self) -> None:
        await self._client.aclose()
