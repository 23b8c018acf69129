"""
Request scope: ties in-flight API calls to the lifetime of a UI flow.

A flow (booking wizard, checkout, booking details screen) runs its requests
through its scope. Cancelling the scope cancels pending requests, and a
response that arrives after cancellation is discarded instead of being
applied to a torn-down flow.
"""

import asyncio
from typing import Awaitable, TypeVar

from gharpaluwa.errors import RequestCancelledError
from gharpaluwa.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RequestScope:
    """Tracks the tasks started for one flow and cancels them together."""

    def __init__(self, name: str = "request"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> int:
        """Number of requests still in flight."""
        return len(self._tasks)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` as a task owned by this scope.

        Raises:
            RequestCancelledError: the scope was cancelled before or while
                the request was running
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestCancelledError()

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise RequestCancelledError() from None
            raise
        finally:
            self._tasks.discard(task)

        if self._cancelled:
            logger.debug(f"Discarding response for cancelled scope '{self.name}'")
            raise RequestCancelledError()
        return result

    def cancel(self) -> None:
        """Cancel every pending request; later run() calls fail immediately."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._tasks:
            logger.info(f"Cancelling {len(self._tasks)} pending request(s) in scope '{self.name}'")
        for task in list(self._tasks):
            task.cancel()

    async def aclose(self) -> None:
        """Cancel and wait until every pending task has finished unwinding."""
        tasks = list(self._tasks)
        self.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "RequestScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
