from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Runs fire-and-forget work off the request path while keeping count of it.

    Each task runs on its own daemon thread inside an exception boundary, so a
    failing task is logged and never reaches the server, and a task that
    outlives the shutdown deadline cannot keep the process alive.
    ``shutdown`` waits, up to that deadline, for the in-flight count to drop
    to zero.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._in_flight = 0
        self._closed = False
        self._ids = itertools.count(1)

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        name = getattr(fn, "__qualname__", repr(fn))
        with self._cond:
            if self._closed:
                logger.warning("Background runner is shutting down; dropping task %s.", name)
                return False
            self._in_flight += 1
            thread_name = f"background-{next(self._ids)}"
        thread = threading.Thread(
            target=self._run,
            args=(name, fn, args, kwargs),
            name=thread_name,
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            self._task_done()
            raise
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._in_flight == 0, timeout)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            self._closed = True
            pending = self._in_flight
        if pending:
            logger.info("Waiting for %s background task(s) to complete.", pending)
        finished = self.wait(timeout)
        if not finished:
            logger.warning("Background tasks still running after %ss; abandoning them.", timeout)
        return finished

    def _run(self, name: str, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Background task %s failed.", name)
        finally:
            self._task_done()

    def _task_done(self) -> None:
        with self._cond:
            self._in_flight -= 1
            self._cond.notify_all()
