"""Sequential paginated retrieval with incremental decoding.

Pages are requested one at a time because each page token comes from the
previous response. Records are decoded and handed to the consumer as they
arrive, so memory use does not grow with the page size.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, NoReturn, Protocol

import ijson
from loguru import logger

from cloudpath.cancellation import Cancellation
from cloudpath.errors import ApiError, OperationCancelledError, error_for
from cloudpath.infra.retry import (
    BackoffPolicy,
    Cancelled,
    Completed,
    Failed,
    classify,
    execute_with_retry,
)

if TYPE_CHECKING:
    from loguru import Logger

    from cloudpath.infra.http import ApiClient

type Record = Any
type Consumer = Callable[[Record], Awaitable[None] | None]

NEXT_PAGE_TOKEN = "nextPageToken"


class AsyncReadable(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


# ─── Request ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PageRequest:
    """Template for every page of a listing.

    The page token is sent in the JSON body when ``body`` is set (POST
    listings such as ``entries:list``) and as a query parameter otherwise.
    """

    method: str
    path: str
    params: Mapping[str, str] = field(default_factory=dict)
    body: Mapping[str, Any] | None = None
    page_token: str | None = None
    items_field: str = "entries"
    token_field: str = "pageToken"

    def query(self) -> dict[str, str]:
        params = dict(self.params)
        if self.body is None and self.page_token:
            params[self.token_field] = self.page_token
        return params

    def json(self) -> dict[str, Any] | None:
        if self.body is None:
            return None
        body = dict(self.body)
        if self.page_token:
            body[self.token_field] = self.page_token
        return body


# ─── Outcomes ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class StreamCompleted:
    pages: int
    records: int

    def unwrap(self) -> StreamCompleted:
        return self


@dataclass(frozen=True, slots=True)
class StreamFailed:
    """The stream stopped early.

    ``pages`` counts fully consumed pages; ``records`` counts every record
    delivered, including any from the page that failed mid-decode.
    """

    error: ApiError
    pages: int
    records: int

    def unwrap(self) -> NoReturn:
        raise self.error


@dataclass(frozen=True, slots=True)
class StreamCancelled:
    pages: int
    records: int

    def unwrap(self) -> NoReturn:
        raise OperationCancelledError("Stream was cancelled")


type StreamOutcome = StreamCompleted | StreamFailed | StreamCancelled


# ─── Decoding ────────────────────────────────────────────────────────


async def read_page(
    stream: AsyncReadable,
    consumer: Consumer,
    *,
    items_field: str = "entries",
) -> tuple[str | None, int]:
    """Decode one page, delivering each item of ``items_field`` as it completes.

    Returns:
        The next page token (None when absent or empty) and the number of
        records delivered.
    """
    item_prefix = f"{items_field}.item"
    next_token: str | None = None
    builder: ijson.ObjectBuilder | None = None
    delivered = 0

    async for prefix, event, value in ijson.parse_async(stream, use_float=True):
        if builder is not None:
            builder.event(event, value)
            if prefix == item_prefix and event in ("end_map", "end_array"):
                await _deliver(consumer, builder.value)
                delivered += 1
                builder = None
        elif prefix == item_prefix:
            if event in ("start_map", "start_array"):
                builder = ijson.ObjectBuilder()
                builder.event(event, value)
            else:
                await _deliver(consumer, value)
                delivered += 1
        elif prefix == NEXT_PAGE_TOKEN and event == "string":
            next_token = value or None

    return next_token, delivered


async def _deliver(consumer: Consumer, record: Record) -> None:
    result = consumer(record)
    if inspect.isawaitable(result):
        await result


# ─── Streaming ───────────────────────────────────────────────────────


async def stream_pages(
    client: ApiClient,
    template: PageRequest,
    consumer: Consumer,
    policy: BackoffPolicy,
    cancellation: Cancellation | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    log: Logger | None = None,
) -> StreamOutcome:
    """Fetch every page of ``template`` and feed its records to ``consumer``.

    Opening each page goes through ``execute_with_retry``. Once a page body
    is being decoded it is not retried, since its records may already have
    been delivered; a decode failure ends the stream instead. Records from
    earlier pages are never rolled back. Exceptions raised by ``consumer``
    propagate unchanged.
    """
    cancellation = cancellation or Cancellation()
    log = log or logger.bind(component="paging")
    next_token: str | None = None
    pages = 0
    records = 0
    consumer_error: BaseException | None = None

    async def counting(record: Record) -> None:
        nonlocal records, consumer_error
        try:
            await _deliver(consumer, record)
        except Exception as e:
            consumer_error = e
            raise
        records += 1

    while True:
        if cancellation.is_cancelled:
            log.debug("Stream cancelled after {pages} page(s)", pages=pages)
            return StreamCancelled(pages=pages, records=records)

        request = replace(template, page_token=next_token)
        outcome = await execute_with_retry(
            lambda: client.open(
                request.method, request.path, json=request.json(), params=request.query(),
            ),
            policy,
            cancellation,
            sleep=sleep,
            log=log,
        )

        match outcome:
            case Cancelled():
                return StreamCancelled(pages=pages, records=records)
            case Failed(error=error):
                log.warning(
                    "Page {page} of {path} failed: {error}",
                    page=pages + 1, path=template.path, error=error,
                )
                return StreamFailed(error=error, pages=pages, records=records)
            case Completed(value=response):
                pass

        try:
            async with response:
                next_token, count = await read_page(
                    response.content, counting, items_field=template.items_field,
                )
        except Exception as e:
            # errors raised by the consumer are not page failures
            if e is consumer_error:
                raise
            kind = classify(e)
            if kind is None:
                raise
            error = error_for(kind, f"Reading page {pages + 1} failed: {e}", cause=e)
            return StreamFailed(error=error, pages=pages, records=records)

        pages += 1
        log.debug(
            "Page {page}: {count} record(s), more={more}",
            page=pages, count=count, more=next_token is not None,
        )
        if next_token is None:
            return StreamCompleted(pages=pages, records=records)
