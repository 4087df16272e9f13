"""Helpers for driving the async pipeline from sync entry points."""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion from a Celery task, thread or CLI command.

    The loop is reused across calls and never closed: httpx and fal_client
    cache clients bound to the loop that created them.
    """
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def run_in_new_loop(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine on a private event loop (for background threads)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
