"""Best-effort loading of several independent resources."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from loguru import logger

from cloudpath.errors import BatchError, ErrorKind
from cloudpath.infra.retry import classify

if TYPE_CHECKING:
    from loguru import Logger


async def gather_best_effort[K, T](
    keys: Iterable[K],
    fetch: Callable[[K], Awaitable[T]],
    *,
    log: Logger | None = None,
) -> dict[K, T]:
    """Fetch every key concurrently, tolerating individual failures.

    One failing resource does not prevent the others from loading. A
    re-authentication failure is the exception: the credential is shared,
    so the remaining fetches are cancelled and the error is raised at once.
    A cancelled fetch aborts the batch the same way.

    Returns:
        Results keyed by resource id, when every fetch succeeded.

    Raises:
        ReauthenticationRequiredError: As soon as any fetch reports it.
        OperationCancelledError: As soon as any fetch observes cancellation.
        BatchError: After all fetches finished, if any failed. Carries the
            successful results and every failure.
    """
    log = log or logger.bind(component="batch")
    tasks: dict[asyncio.Task[T], K] = {}
    for key in keys:
        tasks[asyncio.ensure_future(fetch(key))] = key

    results: dict[K, T] = {}
    failures: dict[K, BaseException] = {}
    pending: set[asyncio.Task[T]] = set(tasks)

    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                key = tasks[task]
                exc = task.exception()
                if exc is None:
                    results[key] = task.result()
                    continue
                match classify(exc):
                    case ErrorKind.REAUTHENTICATION_REQUIRED:
                        log.warning("Aborting batch, {key} requires reauthentication", key=key)
                        raise exc
                    case ErrorKind.CANCELLED:
                        log.debug("Batch cancelled while loading {key}", key=key)
                        raise exc
                log.warning("Failed to load {key}: {error}", key=key, error=exc)
                failures[key] = exc
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if failures:
        raise BatchError(results, failures)
    return results
