"""Cooperative cancellation token shared by the retry and paging loops."""

from __future__ import annotations

import asyncio

from cloudpath.errors import OperationCancelledError


class Cancellation:
    """Cancellation flag that can also interrupt a backoff wait.

    ``cancel`` may be called from any thread, e.g. a UI thread driving an
    operation that runs on a background event loop.

    Example:
        cancellation = Cancellation()
        task = asyncio.create_task(stream_pages(..., cancellation=cancellation))
        cancellation.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    def cancel(self) -> None:
        self._cancelled = True
        loop = self._loop
        if loop is None or loop.is_closed():
            self._event.set()
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            self._event.set()
        else:
            loop.call_soon_threadsafe(self._event.set)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelledError("Operation was cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            OperationCancelledError: If the token fires during the wait.
        """
        self._loop = asyncio.get_running_loop()
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return
        raise OperationCancelledError("Operation was cancelled during backoff")
