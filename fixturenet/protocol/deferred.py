"""One-shot completion handle for a captured request."""

from __future__ import annotations

import asyncio
from typing import Generator, Generic, TypeVar

from fixturenet.exceptions import CompletionError

T = TypeVar("T")


class Deferred(Generic[T]):
    """An awaitable that is settled exactly once, from outside.

    Settling a second time raises :class:`CompletionError` instead of being
    ignored, so double resolution shows up as a bug in tests.  The future is
    created lazily so a Deferred can be built outside a running loop.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[T] | None = None

    @property
    def future(self) -> asyncio.Future[T]:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            # Consumers may never await; keep the loop from reporting
            # "exception was never retrieved".
            self._future.add_done_callback(_consume_exception)
        return self._future

    @property
    def settled(self) -> bool:
        return self._future is not None and self._future.done()

    def resolve(self, value: T) -> None:
        if self.settled:
            raise CompletionError("Completion handle was already settled")
        self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if self.settled:
            raise CompletionError(
                "Completion handle was already settled",
                context={"error": repr(error)},
            )
        self.future.set_exception(error)

    def cancel(self) -> None:
        """Cancel waiters; a no-op once settled."""
        if not self.settled:
            self.future.cancel()

    def __await__(self) -> Generator[object, None, T]:
        return self.future.__await__()


def _consume_exception(future: asyncio.Future[object]) -> None:
    if not future.cancelled():
        future.exception()
