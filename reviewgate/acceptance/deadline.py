"""
Cancellable deadlines.

One abstraction for every timer in the workflow: the acceptance deadline,
the access guard's fail-open timeout, and delayed navigations. A deadline is
armed explicitly, cancelled explicitly, and never fires after ``cancel()``.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeadlineExceeded(Exception):
    """Raised by ``Deadline.guard`` when the deadline fires first."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Deadline of {timeout:.2f}s exceeded")


class Deadline:
    """
    A single-shot timer on the running event loop.

    Example:
        ```python
        deadline = Deadline(15.0, on_expire=show_timeout)
        deadline.arm()
        ...
        deadline.cancel()  # terminal state reached first

        # Or race a coroutine against it
        result = await Deadline(10.0).guard(lookup())
        ```
    """

    def __init__(
        self,
        timeout: float,
        on_expire: Optional[Callable[[], Any]] = None,
    ) -> None:
        """
        Args:
            timeout: Seconds from ``arm()`` until the deadline fires
            on_expire: Called once when the deadline fires
        """
        self.timeout = timeout
        self.on_expire = on_expire
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Future] = None
        self._callback: Optional[asyncio.Future] = None
        self._fired = False

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def fired(self) -> bool:
        return self._fired

    def arm(self, on_expire: Optional[Callable[[], Any]] = None) -> None:
        """
        Start (or restart) the countdown.

        Re-arming cancels the previous countdown and clears ``fired``.
        """
        self.cancel()
        if on_expire is not None:
            self.on_expire = on_expire
        self._fired = False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.timeout, self._fire)

    def cancel(self) -> bool:
        """
        Stop the countdown.

        Returns:
            True if a pending countdown was stopped
        """
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def close(self) -> None:
        """Stop the countdown, any coroutine being guarded and a running callback."""
        self.cancel()
        for task in (self._task, self._callback):
            if task is not None and not task.done():
                task.cancel()
        self._task = None
        self._callback = None

    def _fire(self) -> None:
        self._handle = None
        self._fired = True
        logger.debug("Deadline of %.2fs fired", self.timeout)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self.on_expire is not None:
            result = self.on_expire()
            if asyncio.iscoroutine(result):
                self._callback = asyncio.ensure_future(result)
                self._callback.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Deadline callback failed", exc_info=error)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Race an awaitable against this deadline.

        The countdown is armed here and cancelled as soon as the awaitable
        settles, whichever way it settles.

        Raises:
            DeadlineExceeded: The deadline fired; the awaitable was cancelled
        """
        task = asyncio.ensure_future(awaitable)
        self._task = task
        self.arm()
        try:
            return await task
        except asyncio.CancelledError:
            if self._fired:
                raise DeadlineExceeded(self.timeout) from None
            # Cancelled from outside: take the guarded task down with us.
            task.cancel()
            raise
        finally:
            self.cancel()
            if self._task is task:
                self._task = None
