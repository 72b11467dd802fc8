"""
Async Utilities
===============

Run pipeline coroutines from synchronous callers (CLI, scripts, sync web
handlers), whether or not an event loop is already running in the thread.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_event_loop_running() -> bool:
    try:
        asyncio.get_running_loop()
        return True
    except RuntimeError:
        return False


def run_async_safely(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion from synchronous code.

    Inside a running loop the coroutine gets its own loop on a separate
    thread; otherwise a fresh loop is created, used and closed.

    Raises:
        Any exception raised by the coroutine
    """
    if is_event_loop_running():
        logger.debug("Running coroutine on a separate thread (event loop already running)")
        return _run_in_new_thread(coro)

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        asyncio.set_event_loop(None)
        loop.close()


def _run_in_new_thread(coro: Coroutine[Any, Any, T]) -> T:
    result: Optional[T] = None
    error: Optional[BaseException] = None

    def _runner() -> None:
        nonlocal result, error
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(coro)
        except Exception as e:
            error = e
        finally:
            loop.close()

    thread = threading.Thread(target=_runner, name='designsynth-sync', daemon=True)
    thread.start()
    thread.join()

    if error is not None:
        raise error
    return result  # type: ignore[return-value]


__all__ = ['run_async_safely', 'is_event_loop_running']
