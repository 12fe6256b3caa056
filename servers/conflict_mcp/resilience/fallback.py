"""Degrade to a neutral value instead of failing the analysis."""

from typing import Any, Callable, Coroutine, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def with_default(
    func: Callable[..., Coroutine[Any, Any, T]],
    default: T,
    *args: Any,
    recover: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """Execute an async function and return ``default`` on failure.

    Args:
        func: Async function to execute
        default: Value to return if function fails
        *args: Positional arguments for function
        recover: Exception types that fall back to the default; others propagate
        **kwargs: Keyword arguments for function

    Returns:
        Function result or default value
    """
    try:
        return await func(*args, **kwargs)
    except recover as e:
        logger.warning(
            "using_default_value",
            function=getattr(func, "__name__", repr(func)),
            error_type=type(e).__name__,
            error=str(e),
        )
        return default
