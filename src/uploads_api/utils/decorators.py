"""Timing decorators shared by the API and the workers."""
import time
import logging
import functools
from typing import Any, Callable, TypeVar, cast

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: F) -> F:
    """Log how long `func` took, on the logger of the module defining it.

    Failures are logged with their duration and re-raised unchanged.
    """
    func_logger = logging.getLogger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            duration = time.perf_counter() - start_time
            func_logger.warning(f"{func.__qualname__} failed after {duration:.3f}s: {e}")
            raise
        duration = time.perf_counter() - start_time
        func_logger.info(f"{func.__qualname__} completed in {duration:.3f}s")
        return result
    return cast(F, wrapper)


def async_log_execution_time(func: F) -> F:
    """Coroutine counterpart of `log_execution_time`."""
    func_logger = logging.getLogger(func.__module__)

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            duration = time.perf_counter() - start_time
            func_logger.warning(f"{func.__qualname__} failed after {duration:.3f}s: {e}")
            raise
        duration = time.perf_counter() - start_time
        func_logger.info(f"{func.__qualname__} completed in {duration:.3f}s")
        return result
    return cast(F, wrapper)
