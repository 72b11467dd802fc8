"""Tests for running pipeline coroutines from synchronous callers."""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from designsynth.utils.async_utils import is_event_loop_running, run_async_safely


@pytest.mark.unit
class TestRunAsyncSafely:
    """Sync entry points into async code."""

    def test_returns_coroutine_result(self):
        async def archive_size():
            await asyncio.sleep(0)
            return 1024

        assert run_async_safely(archive_size()) == 1024

    def test_exception_propagates(self):
        async def failing():
            raise ValueError("template missing")

        with pytest.raises(ValueError, match="template missing"):
            run_async_safely(failing())

    def test_sequential_calls_get_fresh_loops(self):
        """Every call closes its loop; the next call must not see it."""
        async def current_loop():
            return asyncio.get_running_loop()

        first = run_async_safely(current_loop())
        second = run_async_safely(current_loop())

        assert first is not second
        assert first.is_closed()

    def test_inside_running_loop_uses_separate_thread(self):
        """Sync code called from an async handler still gets its result."""
        async def thread_name():
            return threading.current_thread().name

        async def handler():
            return run_async_safely(thread_name())

        loop = asyncio.new_event_loop()
        try:
            assert loop.run_until_complete(handler()) == 'designsynth-sync'
        finally:
            loop.close()

    def test_exception_from_separate_thread_propagates(self):
        async def failing():
            raise RuntimeError("check command crashed")

        async def handler():
            return run_async_safely(failing())

        loop = asyncio.new_event_loop()
        try:
            with pytest.raises(RuntimeError, match="check command crashed"):
                loop.run_until_complete(handler())
        finally:
            loop.close()

    def test_parallel_workers_do_not_interfere(self):
        """Concurrent synthesis requests from a thread pool each complete."""
        async def request(request_id, step):
            await asyncio.sleep(0.01)
            return f"request{request_id}_step{step}"

        def worker(request_id):
            return [run_async_safely(request(request_id, step)) for step in range(3)]

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(worker, range(4)))

        for request_id, steps in enumerate(results):
            assert steps == [f"request{request_id}_step{step}" for step in range(3)]


@pytest.mark.unit
class TestIsEventLoopRunning:
    def test_false_in_sync_context(self):
        assert is_event_loop_running() is False

    def test_true_inside_coroutine(self):
        async def check():
            return is_event_loop_running()

        loop = asyncio.new_event_loop()
        try:
            assert loop.run_until_complete(check()) is True
        finally:
            loop.close()
