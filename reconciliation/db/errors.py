"""Translation of driver/ORM failures into the service error hierarchy."""

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError

from reconciliation.core.exceptions import InternalError

P = ParamSpec("P")
R = TypeVar("R")

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


def translate_db_errors(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Re-raise any SQLAlchemyError from a repository method as InternalError.

    The original exception is kept as __cause__. Nothing is retried.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error(
                "persistence_failure",
                operation=func.__qualname__,
                error_type=type(exc).__name__,
            )
            raise InternalError(
                "Persistence operation failed",
                details={"operation": func.__qualname__, "error_type": type(exc).__name__},
            ) from exc

    return wrapper
