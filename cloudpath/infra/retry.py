"""Exponential backoff with classified failures.

``execute_with_retry`` runs an async operation and returns an outcome
value instead of raising:

    outcome = await execute_with_retry(fetch, BackoffPolicy(0.1, 4, 2.0))
    match outcome:
        case Completed(value=page):
            ...
        case Failed(error=error):
            ...
        case Cancelled():
            ...

Only ``ErrorKind.TRANSIENT`` failures are retried. Exceptions that cannot
be classified are treated as defects and propagate unchanged.
"""

from __future__ import annotations

import ssl
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, NoReturn

import aiohttp
import ijson
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from cloudpath.cancellation import Cancellation
from cloudpath.constants import (
    DEFAULT_INITIAL_DELAY_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MULTIPLIER,
)
from cloudpath.errors import ApiError, ErrorKind, OperationCancelledError, error_for
from cloudpath.infra.http import HttpError

if TYPE_CHECKING:
    from loguru import Logger

TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

# 403 reasons that Google uses for quota and rate limiting
RATE_LIMIT_REASONS = frozenset({
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "RESOURCE_EXHAUSTED",
})

REAUTH_MARKERS = ("invalid_grant", "invalid_rapt")


# =============================================================================
# Policy
# =============================================================================


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Exponential backoff parameters.

    Args:
        initial_delay: Seconds to wait before the second attempt.
        max_attempts: Total attempts, including the first one.
        multiplier: Growth factor between consecutive waits.
    """

    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    multiplier: float = DEFAULT_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-based; the first is free)."""
        if attempt <= 1:
            return 0.0
        return self.initial_delay * self.multiplier ** (attempt - 2)


# =============================================================================
# Outcomes
# =============================================================================


@dataclass(frozen=True, slots=True)
class Completed[T]:
    value: T
    attempts: int = 1

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failed:
    error: ApiError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def attempts(self) -> int:
        return self.error.attempts

    def unwrap(self) -> NoReturn:
        raise self.error


@dataclass(frozen=True, slots=True)
class Cancelled:
    attempts: int = 0

    def unwrap(self) -> NoReturn:
        raise OperationCancelledError("Operation was cancelled", attempts=self.attempts)


type Outcome[T] = Completed[T] | Failed | Cancelled


# =============================================================================
# Classification
# =============================================================================


def classify(exc: BaseException) -> ErrorKind | None:
    """Map an exception to its ``ErrorKind``, or None if it is a defect."""
    match exc:
        case ApiError():
            return exc.kind
        case HttpError(status=0):
            cause = exc.__cause__
            if isinstance(cause, (aiohttp.ClientSSLError, ssl.SSLError)):
                return ErrorKind.CONFIGURATION
            return ErrorKind.TRANSIENT
        case HttpError(status=401):
            return ErrorKind.REAUTHENTICATION_REQUIRED
        case HttpError(status=400) if any(m in exc.body for m in REAUTH_MARKERS):
            return ErrorKind.REAUTHENTICATION_REQUIRED
        case HttpError(status=403):
            if RATE_LIMIT_REASONS.intersection(exc.reasons):
                return ErrorKind.TRANSIENT
            return ErrorKind.ACCESS_DENIED
        case HttpError(status=status) if status in TRANSIENT_STATUSES:
            return ErrorKind.TRANSIENT
        case HttpError():
            return ErrorKind.CONFIGURATION
        case aiohttp.ClientSSLError() | ssl.SSLError():
            return ErrorKind.CONFIGURATION
        case aiohttp.ClientError() | TimeoutError() | ConnectionError():
            return ErrorKind.TRANSIENT
        case ijson.JSONError():
            return ErrorKind.TRANSIENT
        case _:
            return None


def _is_transient(exc: BaseException) -> bool:
    return classify(exc) is ErrorKind.TRANSIENT


# =============================================================================
# Scheduler
# =============================================================================


def _before_sleep(log: Logger, policy: BackoffPolicy) -> Callable[[RetryCallState], None]:
    def hook(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        log.warning(
            "Retry {attempt}/{max_attempts} after {error}: {reason}. Waiting {delay:.2f}s...",
            attempt=state.attempt_number,
            max_attempts=policy.max_attempts,
            error=type(exc).__name__,
            reason=exc,
            delay=delay,
        )

    return hook


async def execute_with_retry[T](
    operation: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    cancellation: Cancellation | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    log: Logger | None = None,
) -> Outcome[T]:
    """Run ``operation`` until it succeeds or fails for good.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Backoff parameters.
        cancellation: Token checked before every attempt and during waits.
        sleep: Wait implementation. Defaults to ``cancellation.sleep`` so a
            cancel interrupts the wait.
        log: Logger for retry diagnostics.

    Returns:
        ``Completed`` with the value, ``Failed`` with a classified
        ``ApiError`` carrying the attempt count, or ``Cancelled``.
    """
    cancellation = cancellation or Cancellation()
    log = log or logger.bind(component="retry")
    attempts = 0

    retrying = AsyncRetrying(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.initial_delay, exp_base=policy.multiplier),
        sleep=sleep or cancellation.sleep,
        before_sleep=_before_sleep(log, policy),
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                cancellation.raise_if_cancelled()
                attempts = attempt.retry_state.attempt_number
                value = await operation()
    except Exception as e:
        kind = classify(e)
        if kind is None:
            raise
        if kind is ErrorKind.CANCELLED:
            log.debug("Cancelled after {attempts} attempt(s)", attempts=attempts)
            return Cancelled(attempts=attempts)
        if kind is ErrorKind.TRANSIENT:
            log.error("Giving up after {attempts} attempt(s): {error}", attempts=attempts, error=e)
        message = e.message if isinstance(e, ApiError) else str(e)
        return Failed(error_for(kind, message, attempts=attempts, cause=e))

    return Completed(value=value, attempts=attempts)
