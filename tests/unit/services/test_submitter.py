"""
Unit Tests for HTTP Sync Submitter

Uses httpx.MockTransport in place of a remote endpoint.
"""

import json
from typing import Callable, Optional

import httpx
import pytest

from astral.domain.models.sync_models import SubmitOutcome, SyncQueueItem
from astral.services.offline.submitter import HttpSyncSubmitter, classify_status

ENDPOINT = "https://sync.example.org/api/sync"


def make_submitter(
    handler: Callable[[httpx.Request], httpx.Response],
    token: Optional[str] = None,
) -> HttpSyncSubmitter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSyncSubmitter(ENDPOINT, token=token, client=client)


class TestClassifyStatus:
    """HTTP status to submit outcome mapping."""

    @pytest.mark.parametrize(
        "status, outcome",
        [
            (200, SubmitOutcome.SUCCESS),
            (201, SubmitOutcome.SUCCESS),
            (204, SubmitOutcome.SUCCESS),
            (408, SubmitOutcome.TRANSIENT),
            (429, SubmitOutcome.TRANSIENT),
            (500, SubmitOutcome.TRANSIENT),
            (503, SubmitOutcome.TRANSIENT),
            (400, SubmitOutcome.TERMINAL),
            (404, SubmitOutcome.TERMINAL),
            (409, SubmitOutcome.TERMINAL),
            (422, SubmitOutcome.TERMINAL),
        ],
    )
    def test_status_mapping(self, status: int, outcome: SubmitOutcome) -> None:
        """Test 2xx success, retryable transient and other 4xx terminal."""
        assert classify_status(status) == outcome


class TestHttpSyncSubmitter:
    """Submission over httpx."""

    async def test_posts_item_with_idempotency_key(self) -> None:
        """Test the request shape, auth header and idempotency key."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        submitter = make_submitter(handler, token="secret-token")
        item = SyncQueueItem.create("mood-entry", {"mood": 4}, language="es")

        outcome = await submitter.submit(item)

        assert outcome == SubmitOutcome.SUCCESS
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["Idempotency-Key"] == item.item_id
        assert request.headers["Authorization"] == "Bearer secret-token"
        body = json.loads(request.content)
        assert body["id"] == item.item_id
        assert body["type"] == "mood-entry"
        assert body["payload"] == {"mood": 4}
        assert body["language"] == "es"

    async def test_server_error_is_transient(self) -> None:
        """Test that 503 is retried."""
        submitter = make_submitter(lambda request: httpx.Response(503))

        outcome = await submitter.submit(SyncQueueItem.create("goal", {}))

        assert outcome == SubmitOutcome.TRANSIENT

    async def test_validation_error_is_terminal(self) -> None:
        """Test that 422 is not retried."""
        submitter = make_submitter(lambda request: httpx.Response(422, json={"detail": "bad"}))

        outcome = await submitter.submit(SyncQueueItem.create("goal", {}))

        assert outcome == SubmitOutcome.TERMINAL

    async def test_transport_error_is_transient(self) -> None:
        """Test that a connection failure is retried."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        submitter = make_submitter(handler)

        outcome = await submitter.submit(SyncQueueItem.create("goal", {}))

        assert outcome == SubmitOutcome.TRANSIENT

    async def test_ping(self) -> None:
        """Test that any response counts as reachable."""
        assert await make_submitter(lambda request: httpx.Response(405)).ping()

        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        assert not await make_submitter(unreachable).ping()

    async def test_close_leaves_injected_client_open(self) -> None:
        """Test that close() does not close a caller-owned client."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        submitter = HttpSyncSubmitter(ENDPOINT, client=client)

        await submitter.close()

        assert not client.is_closed
        await client.aclose()
