"""
Sync Submitter

Network boundary for the sync queue: one outbound call per item.

ARCHITECTURE: The queue depends only on SyncSubmitter. Transport
details (HTTP, auth, status mapping) stay in implementations.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from astral.config.logging_config import get_logger
from astral.domain.models.sync_models import SubmitOutcome, SyncQueueItem

logger = get_logger(__name__)

# Statuses worth retrying; every other 4xx is a permanent rejection
RETRYABLE_STATUSES = frozenset({408, 425, 429})


def classify_status(status_code: int) -> SubmitOutcome:
    """
    Map an HTTP status code to a submit outcome.

    Args:
        status_code: Response status

    Returns:
        SUCCESS for 2xx, TRANSIENT for 408/425/429/5xx, TERMINAL otherwise
    """
    if 200 <= status_code < 300:
        return SubmitOutcome.SUCCESS
    if status_code in RETRYABLE_STATUSES or status_code >= 500:
        return SubmitOutcome.TRANSIENT
    return SubmitOutcome.TERMINAL


class SyncSubmitter(ABC):
    """
    Abstract submit contract.

    Implementations return an outcome. They may instead raise
    TerminalSyncFailure to reject an item permanently or
    TransientSyncFailure to request a retry; any other exception that
    escapes is treated as a transient failure.
    """

    @abstractmethod
    async def submit(self, item: SyncQueueItem) -> SubmitOutcome:
        """Deliver one item to the remote endpoint."""

    async def ping(self) -> bool:
        """Connectivity check used by the network monitor."""
        return True

    async def close(self) -> None:
        return None


class HttpSyncSubmitter(SyncSubmitter):
    """
    HTTP submitter using httpx.

    Each item is POSTed as JSON with an Idempotency-Key header equal
    to the item id, so a retried delivery can be deduplicated remotely.

    Usage:
        submitter = HttpSyncSubmitter("https://api.example.org/sync", token="...")
        outcome = await submitter.submit(item)
        await submitter.close()
    """

    def __init__(
        self,
        endpoint_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._endpoint_url = endpoint_url
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    async def submit(self, item: SyncQueueItem) -> SubmitOutcome:
        body = {
            "id": item.item_id,
            "type": item.payload_type,
            "payload": item.payload,
            "created_at": item.created_at.isoformat(),
            "retry_count": item.retry_count,
            "language": item.language,
            "context": item.context,
        }
        try:
            response = await self._client.post(
                self._endpoint_url,
                json=body,
                headers={**self._headers, "Idempotency-Key": item.item_id},
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Sync submit transport error",
                item_id=item.item_id,
                error_type=type(e).__name__,
            )
            return SubmitOutcome.TRANSIENT

        outcome = classify_status(response.status_code)
        if outcome != SubmitOutcome.SUCCESS:
            logger.warning(
                "Sync submit rejected",
                item_id=item.item_id,
                status_code=response.status_code,
                outcome=outcome.value,
            )
        return outcome

    async def ping(self) -> bool:
        """Any HTTP response counts as reachable."""
        try:
            await self._client.head(self._endpoint_url, headers=self._headers)
            return True
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
