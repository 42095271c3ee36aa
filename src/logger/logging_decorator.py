"""
Centralized Logging Utilities and Decorators

Provides the logging setup and function decorators shared by the feed client,
the link resolver, the catalog store and the pipeline.

Usage:
    from src.logger import setup_logging, log_function

    # Setup logging for a module
    logger = setup_logging(
        logger_name="resolver",
        log_file="logs/resolver.log",
        verbose=True
    )

    # Decorate functions for automatic logging
    @log_function(logger_name="database", log_args=True)
    def save_event(name, round_number, country):
        ...
"""

import functools
import logging
import time
from pathlib import Path
from typing import Optional, Callable, Any


def setup_logging(
    logger_name: str,
    log_file: str = "logs/pipeline.log",
    verbose: bool = False,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Set up logging with file and optional console handlers.

    Args:
        logger_name: Name for the logger (e.g., "feed", "resolver")
        log_file: Path to log file (default: "logs/pipeline.log")
        verbose: If True, add console handler with DEBUG level (default: False)
        level: Base logging level (default: logging.INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Avoid adding multiple handlers if already configured
    if logger.handlers:
        if verbose and not any(
            isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
            for h in logger.handlers
        ):
            logger.setLevel(logging.DEBUG)
            logger.addHandler(_console_handler())
        return logger

    logger.setLevel(logging.DEBUG if verbose else level)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)

    if verbose:
        logger.addHandler(_console_handler())

    return logger


def _console_handler() -> logging.Handler:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    return console_handler


def log_function(
    logger_name: Optional[str] = None,
    level: int = logging.DEBUG,
    log_args: bool = False,
    log_result: bool = False,
    log_execution_time: bool = True,
) -> Callable:
    """
    Decorator to log function entry, exit, execution time, and exceptions.

    Exceptions are logged with their traceback and re-raised unchanged.

    Args:
        logger_name: Logger name (if None, uses the decorated function's module name)
        level: Log level for entry/exit messages (default: logging.DEBUG)
        log_args: If True, log function arguments (default: False)
        log_result: If True, log return value (default: False)
        log_execution_time: If True, log execution duration (default: True)

    Example:
        @log_function(logger_name="resolver", log_args=True)
        def resolve(reference):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = logging.getLogger(logger_name or func.__module__)
            if not logger.handlers:
                logger = setup_logging(logger.name)

            func_name = func.__qualname__
            log_msg = f"Calling {func_name}"

            if log_args and (args or kwargs):
                args_repr = [repr(a) for a in args]
                kwargs_repr = [f"{k}={v!r}" for k, v in kwargs.items()]
                log_msg += f" with args: {', '.join(args_repr + kwargs_repr)}"

            logger.log(level, log_msg)
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                execution_time = time.perf_counter() - start_time
                logger.error(
                    f"Exception in {func_name} after {execution_time:.2f}s: "
                    f"{type(e).__name__}: {e}",
                    exc_info=True,
                )
                raise

            completion_msg = f"Completed {func_name}"
            if log_execution_time:
                completion_msg += f" in {time.perf_counter() - start_time:.2f}s"
            if log_result:
                completion_msg += f" with result: {result!r}"
            logger.log(level, completion_msg)

            return result

        return wrapper

    return decorator


def log_with_timer(logger_name: Optional[str] = None) -> Callable:
    """
    Log entry/exit with execution time at INFO level.

    Used for the coarse, slow operations (feed paging, a full ingestion pass).
    """
    return log_function(
        logger_name=logger_name,
        level=logging.INFO,
        log_args=False,
        log_result=False,
        log_execution_time=True,
    )
