"""
Helper functions for the lockscreen package.
Pure utility functions with minimal dependencies.

Dependencies: state (for task tracking)
"""
from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from . import state
from logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Thread Executor for Blocking Operations
# =============================================================================
# Artwork downloads, image decoding and file publishing block; they run here
# so the event loop keeps servicing timers.

_thread_executor: Optional[ThreadPoolExecutor] = None


def _get_daemon_executor() -> ThreadPoolExecutor:
    """Get or create the thread executor for blocking operations."""
    global _thread_executor
    if _thread_executor is None:
        _thread_executor = ThreadPoolExecutor(
            max_workers=4,
            thread_name_prefix="NowPlaying_Worker"
        )
    return _thread_executor


async def run_in_daemon_executor(func: Callable, *args: Any) -> Any:
    """
    Run a blocking function in the shared thread executor.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_daemon_executor(), func, *args)


def shutdown_daemon_executor():
    """Shutdown the thread executor. Call during app cleanup."""
    global _thread_executor
    if _thread_executor is not None:
        # wait=False so a hung download cannot block shutdown
        _thread_executor.shutdown(wait=False, cancel_futures=True)
        _thread_executor = None


def create_tracked_task(coro, name: Optional[str] = None):
    """
    Create a background task with automatic cleanup and error logging.
    Prevents silent failures and ensures tasks complete even if references are lost.
    """
    task = asyncio.create_task(coro, name=name)
    state._background_tasks.add(task)

    def cleanup(t):
        state._background_tasks.discard(t)
        if t.cancelled():
            return  # Expected during shutdown / supersede
        exc = t.exception()
        if exc is not None:
            logger.error(f"Background task {t.get_name()} failed: {exc}", exc_info=exc)

    task.add_done_callback(cleanup)
    return task


async def cancel_task(task: Optional[asyncio.Task], timeout: float = 0.5) -> None:
    """Cancel a task and wait briefly for it to unwind."""
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()
    try:
        await asyncio.wait_for(task, timeout=timeout)
    except (asyncio.CancelledError, asyncio.TimeoutError):
        pass


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, trim and fold the unicode ellipsis so placeholder lists match either form."""
    if not text:
        return ""
    return text.replace("…", "...").strip().lower()
