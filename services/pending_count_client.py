"""
HTTP client for the pending-order count used by the arrival watermark.
"""
import logging
from typing import Optional

import httpx

from core.config import settings

logger = logging.getLogger(__name__)

PENDING_COUNT_PATH = "/api/orders/pending-count"


class PendingCountError(Exception):
    """The pending count could not be fetched; the caller should refetch later."""


class PendingCountClient:
    def __init__(
        self,
        base_url: str = None,
        token: Optional[str] = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            headers=headers,
            timeout=timeout if timeout is not None else settings.POLL_REQUEST_TIMEOUT_SECONDS,
            transport=transport
        )

    async def fetch_pending_count(self) -> int:
        try:
            response = await self._client.get(PENDING_COUNT_PATH)
        except httpx.TimeoutException as e:
            # Outcome unknown; the next poll simply asks again
            raise PendingCountError("Timed out fetching pending orders") from e
        except httpx.HTTPError as e:
            raise PendingCountError(f"Could not reach order service: {e}") from e

        if response.status_code == 401:
            raise PendingCountError("Session expired. Please sign in again.")
        if response.status_code == 403:
            raise PendingCountError("This account cannot view pending orders")
        if response.status_code >= 400:
            raise PendingCountError(f"Order service returned {response.status_code}")

        try:
            return int(response.json()["pendingCount"])
        except (ValueError, KeyError, TypeError) as e:
            raise PendingCountError("Malformed pending count response") from e

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
