"""Progress reporting and cancellation for the asynchronous prerequisite phase."""

from __future__ import annotations

import asyncio
import functools
from concurrent.futures import Executor
from typing import Any, Callable, Optional, TypeVar

from molselect.core.logging_utils import get_logger
from molselect.errors import QueryCancelledError

logger = get_logger(__name__)

T = TypeVar("T")


class RuntimeContext:
    """Handle shared between a caller and the work it started.

    Work calls ``update()`` at safe points; once the caller has called
    ``cancel()`` the next checkpoint raises ``QueryCancelledError``.
    """

    def __init__(
        self,
        on_progress: Optional[Callable[[str], None]] = None,
        executor: Optional[Executor] = None,
    ):
        self.on_progress = on_progress
        self.executor = executor
        self.messages: list[str] = []
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def check(self) -> None:
        if self._cancelled:
            raise QueryCancelledError("Query was cancelled")

    def update(self, message: str) -> None:
        self.check()
        self.messages.append(message)
        logger.debug("progress: %s", message)
        if self.on_progress is not None:
            self.on_progress(message)

    async def run_sync(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a CPU-bound function in the executor, checking cancellation around it."""
        self.check()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(self.executor, functools.partial(fn, *args, **kwargs))
        self.check()
        return result
