"""Observable state container shared by the session, property and booking stores."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Coroutine, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from rentcrowd.utils.errors import error_message
from rentcrowd.utils.logging import StructuredLogger, log_timing

S = TypeVar("S", bound="StoreState")

Listener = Callable[[Any], None]


class StoreState(BaseModel):
    """Fields every store carries."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    is_loading: bool = False
    error: Optional[str] = None


class Store(Generic[S]):
    """
    Holds one immutable state value.

    Every mutation replaces the whole state in one step and then notifies
    subscribers once, so observers never see a half-applied update.
    """

    def __init__(self, initial_state: S, logger: StructuredLogger):
        self._state = initial_state
        self._listeners: list[Listener] = []
        self._background: set[asyncio.Task] = set()
        self.logger = logger

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(state) after every update; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes: Any) -> S:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def set_loading(self, is_loading: bool) -> None:
        self._set(is_loading=is_loading)

    def set_error(self, error: Optional[str]) -> None:
        self._set(error=error)

    def clear_error(self) -> None:
        self._set(error=None)

    @asynccontextmanager
    async def _track(
        self,
        operation: str,
        fallback_error: str,
        reset_error: bool = True,
        error_overrides: Optional[dict[type, str]] = None,
        **context: Any
    ):
        """
        Loading/error bookkeeping around one API operation.

        On failure the error field gets the server's message (else
        fallback_error), loading is cleared and the exception propagates.
        error_overrides maps exception types to a fixed message.

        On success the caller clears loading in its own final update.
        """
        if reset_error:
            self._set(is_loading=True, error=None)
        else:
            self._set(is_loading=True)

        with log_timing(operation, logger=self.logger, **context):
            try:
                yield
            except asyncio.CancelledError:
                self._set(is_loading=False)
                raise
            except Exception as e:
                message = _override(e, error_overrides) or error_message(e, fallback_error)
                self._set(error=message, is_loading=False)
                self.logger.warning(
                    f"{operation} failed",
                    operation=operation,
                    error=message,
                    error_type=type(e).__name__,
                    **context
                )
                raise

    def _spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        """Run coro in the background; failures are logged, not raised."""
        task = asyncio.create_task(coro)
        self._background.add(task)

        def _done(t: asyncio.Task) -> None:
            self._background.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                self.logger.warning(
                    f"Background {description} failed",
                    operation=description,
                    error=str(exc),
                )

        task.add_done_callback(_done)
        return task

    async def wait_background(self) -> None:
        """Wait for outstanding background work."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding background work."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()


def _override(exc: BaseException, overrides: Optional[dict[type, str]]) -> Optional[str]:
    for exc_type, message in (overrides or {}).items():
        if isinstance(exc, exc_type):
            return message
    return None
