import time
import asyncio
import functools
import logging
from contextlib import contextmanager

from core.config import settings

logger = logging.getLogger("eco_pulse.timing")


@contextmanager
def timer(name: str):
    """Log how long the wrapped block took; over SLOW_CALL_MS it is a warning."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if elapsed_ms >= settings.SLOW_CALL_MS:
            logger.warning(f"[timing] {name} slow: {elapsed_ms:.2f} ms")
        else:
            logger.debug(f"[timing] {name} took {elapsed_ms:.2f} ms")


def timeit(label: str = ""):
    """
    Decorator form of timer() for route handlers and service calls.

    Usage:
        @router.get("/availability")
        @timeit()
        async def availability(...):
            ...

        @timeit("check_availability")
        async def check_availability(date):
            ...
    """

    def _decorate(func):
        name = label or func.__qualname__

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def _async_timed(*args, **kwargs):
                with timer(name):
                    return await func(*args, **kwargs)
            return _async_timed

        @functools.wraps(func)
        def _timed(*args, **kwargs):
            with timer(name):
                return func(*args, **kwargs)
        return _timed

    return _decorate
