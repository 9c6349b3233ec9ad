from __future__ import annotations

import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from cloudpath.cancellation import Cancellation
from cloudpath.errors import AccessDeniedError, ErrorKind, TransientError
from cloudpath.infra.http import ApiClient
from cloudpath.infra.paging import (
    PageRequest,
    StreamCancelled,
    StreamCompleted,
    StreamFailed,
    read_page,
    stream_pages,
)
from cloudpath.infra.retry import BackoffPolicy

pytestmark = [pytest.mark.unit]

# token -> (entries, next token)
PAGES: dict[str | None, tuple[list[dict], str | None]] = {
    None: ([{"id": 1}, {"id": 2}], "A"),
    "A": ([{"id": 3}, {"id": 4}], "B"),
    "B": ([{"id": 5}], "C"),
    "C": ([{"id": 6}, {"id": 7}], None),
}


class ChunkedReader:
    """Async reader returning a payload in fixed-size chunks."""

    def __init__(self, payload: bytes, chunk_size: int = 7) -> None:
        self._payload = payload
        self._chunk_size = chunk_size

    async def read(self, n: int = -1) -> bytes:
        size = self._chunk_size if n < 0 else min(n, self._chunk_size)
        chunk, self._payload = self._payload[:size], self._payload[size:]
        return chunk


class Backend:
    """Fake paginated listing with injectable failures per page token."""

    def __init__(self) -> None:
        self.tokens: list[str | None] = []
        self.failures: dict[str | None, list[web.Response]] = {}

    def fail(self, token: str | None, *responses: web.Response) -> None:
        self.failures[token] = list(responses)

    def _page(self, token: str | None) -> web.Response:
        self.tokens.append(token)
        queued = self.failures.get(token)
        if queued:
            return queued.pop(0)
        entries, next_token = PAGES[token]
        body: dict = {"entries": entries}
        if next_token:
            body["nextPageToken"] = next_token
        return web.json_response(body)

    async def post_list(self, request: web.Request) -> web.Response:
        body = await request.json()
        return self._page(body.get("pageToken"))

    async def get_list(self, request: web.Request) -> web.Response:
        return self._page(request.query.get("pageToken"))

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/v2/entries:list", self.post_list)
        app.router.add_get("/items", self.get_list)
        return app


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
async def server(backend: Backend):
    srv = TestServer(backend.app())
    await srv.start_server()
    yield srv
    await srv.close()


@pytest.fixture
async def client(server: TestServer):
    async with ApiClient(f"http://{server.host}:{server.port}/") as http:
        yield http


POST_TEMPLATE = PageRequest("POST", "v2/entries:list", body={"filter": "x", "pageSize": 2})


# ─── PageRequest ─────────────────────────────────────────────────────


class TestPageRequest:
    def test_token_goes_in_body_for_post(self):
        request = PageRequest("POST", "v2/entries:list", body={"pageSize": 2}, page_token="A")
        assert request.json() == {"pageSize": 2, "pageToken": "A"}
        assert request.query() == {}

    def test_token_goes_in_query_without_body(self):
        request = PageRequest("GET", "items", params={"maxResults": "2"}, page_token="A")
        assert request.query() == {"maxResults": "2", "pageToken": "A"}
        assert request.json() is None

    def test_first_page_has_no_token(self):
        assert "pageToken" not in POST_TEMPLATE.json()


# ─── read_page ───────────────────────────────────────────────────────


class TestReadPage:
    @pytest.mark.asyncio
    async def test_delivers_records_in_order(self):
        payload = json.dumps({
            "entries": [{"id": 1, "labels": {"a": "b"}}, {"id": 2, "tags": [1, 2.5]}],
            "nextPageToken": "next",
        }).encode()
        seen: list = []

        token, count = await read_page(ChunkedReader(payload), seen.append)

        assert token == "next"
        assert count == 2
        assert seen == [{"id": 1, "labels": {"a": "b"}}, {"id": 2, "tags": [1, 2.5]}]

    @pytest.mark.asyncio
    async def test_token_before_items(self):
        payload = b'{"nextPageToken": "t", "items": [{"name": "vm-1"}]}'
        seen: list = []

        token, _ = await read_page(ChunkedReader(payload), seen.append, items_field="items")

        assert token == "t"
        assert seen == [{"name": "vm-1"}]

    @pytest.mark.asyncio
    async def test_empty_token_means_last_page(self):
        payload = b'{"entries": [], "nextPageToken": ""}'
        token, count = await read_page(ChunkedReader(payload), lambda _: None)
        assert token is None
        assert count == 0

    @pytest.mark.asyncio
    async def test_missing_items_field(self):
        token, count = await read_page(ChunkedReader(b"{}"), lambda _: None)
        assert (token, count) == (None, 0)

    @pytest.mark.asyncio
    async def test_scalar_items(self):
        seen: list = []
        await read_page(ChunkedReader(b'{"entries": ["a", 2, null]}'), seen.append)
        assert seen == ["a", 2, None]

    @pytest.mark.asyncio
    async def test_async_consumer_is_awaited(self):
        seen: list = []

        async def consume(record) -> None:
            seen.append(record["id"])

        await read_page(ChunkedReader(b'{"entries": [{"id": 1}, {"id": 2}]}'), consume)
        assert seen == [1, 2]


# ─── stream_pages ────────────────────────────────────────────────────


class TestStreamPages:
    @pytest.mark.asyncio
    async def test_follows_tokens_to_the_end(self, client, backend, recording_sleep):
        seen: list = []

        outcome = await stream_pages(
            client, POST_TEMPLATE, seen.append, BackoffPolicy(), sleep=recording_sleep,
        )

        assert outcome == StreamCompleted(pages=4, records=7)
        assert backend.tokens == [None, "A", "B", "C"]
        assert [r["id"] for r in seen] == [1, 2, 3, 4, 5, 6, 7]

    @pytest.mark.asyncio
    async def test_get_listing_uses_query_token(self, client, backend, recording_sleep):
        seen: list = []
        template = PageRequest("GET", "items", params={"maxResults": "2"})

        outcome = await stream_pages(
            client, template, seen.append, BackoffPolicy(), sleep=recording_sleep,
        )

        assert outcome.unwrap() == StreamCompleted(pages=4, records=7)
        assert backend.tokens == [None, "A", "B", "C"]

    @pytest.mark.asyncio
    async def test_transient_page_failure_is_retried_once_delivered(
        self, client, backend, recording_sleep,
    ):
        backend.fail("B", web.Response(status=503, text="unavailable"))
        seen: list = []

        outcome = await stream_pages(
            client, POST_TEMPLATE, seen.append, BackoffPolicy(), sleep=recording_sleep,
        )

        assert isinstance(outcome, StreamCompleted)
        assert backend.tokens == [None, "A", "B", "B", "C"]
        assert [r["id"] for r in seen] == [1, 2, 3, 4, 5, 6, 7]
        assert recording_sleep.delays == pytest.approx([0.1])

    @pytest.mark.asyncio
    async def test_access_denied_keeps_delivered_prefix(self, client, backend, recording_sleep):
        backend.fail("A", web.json_response({"error": {"status": "PERMISSION_DENIED"}}, status=403))
        seen: list = []

        outcome = await stream_pages(
            client, POST_TEMPLATE, seen.append, BackoffPolicy(), sleep=recording_sleep,
        )

        assert isinstance(outcome, StreamFailed)
        assert isinstance(outcome.error, AccessDeniedError)
        assert (outcome.pages, outcome.records) == (1, 2)
        assert backend.tokens == [None, "A"]
        assert [r["id"] for r in seen] == [1, 2]
        with pytest.raises(AccessDeniedError):
            outcome.unwrap()

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_stream(self, client, backend, recording_sleep):
        backend.fail(None, *(web.Response(status=500) for _ in range(3)))
        policy = BackoffPolicy(initial_delay=0.1, max_attempts=3, multiplier=2.0)

        outcome = await stream_pages(
            client, POST_TEMPLATE, lambda _: None, policy, sleep=recording_sleep,
        )

        assert isinstance(outcome, StreamFailed)
        assert isinstance(outcome.error, TransientError)
        assert outcome.error.attempts == 3
        assert outcome.pages == 0

    @pytest.mark.asyncio
    async def test_truncated_page_fails_without_retry(self, client, backend, recording_sleep):
        backend.fail("A", web.Response(body=b'{"entries": [{"id": 3}, {"id"', content_type="application/json"))
        seen: list = []

        outcome = await stream_pages(
            client, POST_TEMPLATE, seen.append, BackoffPolicy(), sleep=recording_sleep,
        )

        assert isinstance(outcome, StreamFailed)
        assert outcome.error.kind is ErrorKind.TRANSIENT
        assert (outcome.pages, outcome.records) == (1, 3)
        assert backend.tokens == [None, "A"]

    @pytest.mark.asyncio
    async def test_cancelled_before_first_page(self, client, backend):
        cancellation = Cancellation()
        cancellation.cancel()

        outcome = await stream_pages(
            client, POST_TEMPLATE, lambda _: None, BackoffPolicy(), cancellation,
        )

        assert outcome == StreamCancelled(pages=0, records=0)
        assert backend.tokens == []

    @pytest.mark.asyncio
    async def test_cancel_from_consumer_stops_before_next_page(self, client, backend):
        cancellation = Cancellation()
        seen: list = []

        def consume(record) -> None:
            seen.append(record)
            if record["id"] == 2:
                cancellation.cancel()

        outcome = await stream_pages(
            client, POST_TEMPLATE, consume, BackoffPolicy(), cancellation,
        )

        assert outcome == StreamCancelled(pages=1, records=2)
        assert backend.tokens == [None]

    @pytest.mark.asyncio
    async def test_consumer_defect_propagates(self, client):
        def consume(record) -> None:
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await stream_pages(client, POST_TEMPLATE, consume, BackoffPolicy())

    @pytest.mark.asyncio
    async def test_consumer_network_style_error_is_not_a_page_failure(self, client, backend):
        raised = TimeoutError("consumer's own database timed out")

        def consume(record) -> None:
            raise raised

        with pytest.raises(TimeoutError) as exc_info:
            await stream_pages(client, POST_TEMPLATE, consume, BackoffPolicy())

        assert exc_info.value is raised
        assert backend.tokens == [None]

    @pytest.mark.asyncio
    async def test_async_consumer_error_propagates_unchanged(self, client):
        seen: list = []

        async def consume(record) -> None:
            if record["id"] == 3:
                raise ConnectionResetError("downstream sink closed")
            seen.append(record["id"])

        with pytest.raises(ConnectionResetError, match="downstream sink closed"):
            await stream_pages(client, POST_TEMPLATE, consume, BackoffPolicy())

        assert seen == [1, 2]
