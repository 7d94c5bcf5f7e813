import functools
import inspect
import json
import logging
import time
import uuid
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra fields if present
        if hasattr(record, "extra_data"):
            log_record.update(record.extra_data)  # type: ignore

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configures the root logger, JSON lines by default."""
    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


def _log_start(logger: logging.Logger, name: str, op_id: str) -> float:
    logger.debug(
        f"Starting {name}",
        extra={"extra_data": {"event": "start", "operation_id": op_id}},
    )
    return time.perf_counter()


def _log_complete(logger: logging.Logger, name: str, op_id: str, start_time: float) -> None:
    logger.info(
        f"Completed {name}",
        extra={
            "extra_data": {
                "event": "complete",
                "operation_id": op_id,
                "duration_seconds": time.perf_counter() - start_time,
                "status": "success",
            }
        },
    )


def _log_error(
    logger: logging.Logger, name: str, op_id: str, start_time: float, exc: Exception
) -> None:
    logger.error(
        f"Failed {name}: {exc}",
        exc_info=True,
        extra={
            "extra_data": {
                "event": "error",
                "operation_id": op_id,
                "duration_seconds": time.perf_counter() - start_time,
                "status": "error",
                "error_type": type(exc).__name__,
            }
        },
    )


def observe(operation_id: bool = True) -> Callable[[F], F]:
    """
    Decorator recording start, completion and failure of an operation.

    Works on plain functions and on coroutine functions; exceptions are
    logged and re-raised unchanged.

    Args:
        operation_id: If True, generates a unique ID for the operation context.
    """

    def decorator(func: F) -> F:
        logger = get_logger(func.__module__)
        name = func.__qualname__

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                op_id = str(uuid.uuid4()) if operation_id else "n/a"
                start_time = _log_start(logger, name, op_id)
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    _log_error(logger, name, op_id, start_time, exc)
                    raise
                _log_complete(logger, name, op_id, start_time)
                return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            op_id = str(uuid.uuid4()) if operation_id else "n/a"
            start_time = _log_start(logger, name, op_id)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _log_error(logger, name, op_id, start_time, exc)
                raise
            _log_complete(logger, name, op_id, start_time)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
