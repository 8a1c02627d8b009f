"""One-shot observer for uncaught exceptions."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Awaitable


logger = logging.getLogger(__name__)


@dataclass
class FatalFaultHook:
    """
    Calls ``handler`` for the first uncaught exception in the process.

    Hooks ``sys.excepthook``, ``threading.excepthook`` and the running
    event loop's exception handler. Whatever fires first wins; later
    faults are passed to the previous hooks untouched.

    The handler is a coroutine function. It runs on the loop that was
    running at ``install`` time while that loop is alive. A fault on
    another thread blocks that thread until the handler finishes (up to
    ``handoff_timeout``). Only when no loop was captured, or it has
    stopped, does the handler get its own loop via ``asyncio.run``.
    """
    handler: Callable[[BaseException], Awaitable[None]]
    handoff_timeout: float = 30.0

    _fired: bool = field(default=False, init=False)
    _installed: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _prev_excepthook: Any = field(default=None, init=False)
    _prev_threading_hook: Any = field(default=None, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _prev_loop_handler: Any = field(default=None, init=False)
    _task: asyncio.Task | None = field(default=None, init=False)

    @property
    def fired(self) -> bool:
        return self._fired

    def install(self) -> None:
        if self._installed:
            return
        self._prev_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        self._prev_threading_hook = threading.excepthook
        threading.excepthook = self._threading_hook

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        if self._loop is not None:
            self._prev_loop_handler = self._loop.get_exception_handler()
            self._loop.set_exception_handler(self._loop_handler)

        self._installed = True
        logger.debug("Uncaught exception hook installed")

    def uninstall(self) -> None:
        if not self._installed:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._prev_excepthook
        if threading.excepthook == self._threading_hook:
            threading.excepthook = self._prev_threading_hook
        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._prev_loop_handler)
        self._loop = None
        self._installed = False

    def _claim(self) -> bool:
        """True exactly once: for the fault that gets handled."""
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            return True

    def _excepthook(self, exc_type, exc, tb) -> None:
        if isinstance(exc, KeyboardInterrupt) or not self._claim():
            self._prev_excepthook(exc_type, exc, tb)
            return
        self._dispatch(exc)

    def _threading_hook(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is None or not self._claim():
            self._prev_threading_hook(args)
            return
        self._dispatch(args.exc_value)

    def _dispatch(self, exc: BaseException) -> None:
        """Run the handler for a fault reported outside the loop's callbacks."""
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            asyncio.run(self.handler(exc))
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            self._task = loop.create_task(self.handler(exc))
            return

        future = asyncio.run_coroutine_threadsafe(self.handler(exc), loop)
        try:
            future.result(self.handoff_timeout)
        except concurrent.futures.TimeoutError:
            logger.error(f"Uncaught exception handler did not finish within {self.handoff_timeout}s")

    def _loop_handler(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        if exc is None or not self._claim():
            if self._prev_loop_handler is not None:
                self._prev_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            return
        self._task = loop.create_task(self.handler(exc))

    def notify(self, exc: BaseException) -> asyncio.Task | None:
        """
        Report a fault from host code running on the event loop.

        Returns the handler task, or None if a fault was already handled.
        """
        if not self._claim():
            return None
        self._task = asyncio.get_running_loop().create_task(self.handler(exc))
        return self._task
