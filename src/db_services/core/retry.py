"""Bounded retry with backoff for transient database failures."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import exc as sa_exc

from db_services.exceptions import OperationCancelledError, RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Driver-level conditions that may clear on their own: dropped or refused
# connections, pool and statement timeouts, deadlocks, a connection that is
# closed or not open yet.
RETRIABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.InternalError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    sa_exc.ResourceClosedError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)


class RetryPolicy:
    """Retries an operation on transient errors with linear or exponential backoff.

    Attempts are counted from zero. The delay before retry ``n+1`` is
    ``base_delay * 2**n`` (exponential) or ``base_delay * (n + 1)`` (linear).
    An operation runs at most ``max_retries + 1`` times.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        use_exponential_backoff: bool = True,
        retriable: tuple[type[BaseException], ...] = RETRIABLE_EXCEPTIONS,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.use_exponential_backoff = use_exponential_backoff
        self.retriable = retriable

    @classmethod
    def for_connections(
        cls, max_retries: int = 5, base_delay: float = 1.0
    ) -> "RetryPolicy":
        """Policy for opening connections: linear growth instead of doubling."""
        return cls(
            max_retries=max_retries,
            base_delay=base_delay,
            use_exponential_backoff=False,
        )

    def is_retriable(self, error: BaseException) -> bool:
        return isinstance(error, self.retriable)

    def backoff_delay(
        self,
        attempt: int,
        base_delay: Optional[float] = None,
        use_exponential_backoff: Optional[bool] = None,
    ) -> float:
        """Delay in seconds after the failed attempt number ``attempt`` (from 0)."""
        base = self.base_delay if base_delay is None else base_delay
        exponential = (
            self.use_exponential_backoff
            if use_exponential_backoff is None
            else use_exponential_backoff
        )
        if exponential:
            return base * (2**attempt)
        return base * (attempt + 1)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        use_exponential_backoff: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        """
        Await ``operation()`` until it succeeds or retries run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            max_retries: Override of the policy's retry count
            base_delay: Override of the base delay in seconds
            use_exponential_backoff: Override of the backoff shape
            cancel_event: When set, no further attempt is started

        Returns:
            The operation's result

        Raises:
            RetriesExhaustedError: If every attempt failed with a retriable error
            OperationCancelledError: If cancellation was requested between attempts
            Exception: Any non-retriable error, immediately and unchanged
        """
        retries = self.max_retries if max_retries is None else max_retries

        for attempt in range(retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError("Operation cancelled before execution")
            try:
                return await operation()
            except self.retriable as e:
                if attempt >= retries:
                    logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                    raise RetriesExhaustedError(e, attempt + 1) from e

                delay = self.backoff_delay(attempt, base_delay, use_exponential_backoff)
                logger.warning(
                    f"Attempt {attempt + 1}/{retries + 1} failed ({type(e).__name__}: {e}), "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay, cancel_event)

        raise AssertionError("unreachable")

    @staticmethod
    async def _sleep(delay: float, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError("Operation cancelled while waiting to retry")
