"""Structured logging configuration for the Prisma engine.

Simulation runs, rejected formulas and validation failures are logged as
structlog events. Host applications that embed the engine call
:func:`configure_logging` once; library code only ever asks for a logger.
"""

import functools
import logging
import os
from pathlib import Path
import sys
import threading
import time
from typing import Any, Dict, List, Optional

import structlog
from structlog.typing import EventDict, Processor

# Libraries whose INFO chatter would drown out engine events
_QUIET_LOGGERS = ("asyncio", "concurrent.futures", "numexpr")


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: 'json' for machine-readable lines, anything else for
            the console renderer
        log_file: Also write stdlib records to this file
        enable_colors: Colour console output
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=_get_processors(log_format, enable_colors),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
    _route_stdlib_logging(level, log_file)


def _get_processors(log_format: str, enable_colors: bool) -> List[Processor]:
    """Shared processor chain followed by the renderer for ``log_format``."""
    chain: List[Processor] = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_process_info,
        _add_session_id,
    ]
    if log_format.lower() != "json":
        return chain + [structlog.dev.ConsoleRenderer(colors=enable_colors)]
    return chain + [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]


def _route_stdlib_logging(level: int, log_file: Optional[str]) -> None:
    """Send stdlib records to stderr (and ``log_file``) at ``level``."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _add_process_info(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add process and thread ids.

    Sensitivity phase two runs on a background thread, so the thread id
    tells the two phases apart.
    """
    event_dict["process_id"] = os.getpid()
    event_dict["thread_id"] = threading.get_ident()
    return event_dict


def _add_session_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Ensure every entry carries a session_id key (None outside a session)."""
    event_dict.setdefault("session_id", None)
    return event_dict


def get_logger(name: str, **context: Any) -> structlog.BoundLogger:
    """Logger for ``name`` with ``context`` already bound."""
    bound = structlog.get_logger(name)
    return bound.bind(**context) if context else bound


def log_simulation_run(
    logger: structlog.BoundLogger,
    scenario_id: str,
    iterations: int,
    summary: Dict[str, float],
    failed_iterations: int = 0,
    duration_ms: Optional[float] = None,
) -> None:
    """Log the outcome of one Monte Carlo run.

    Args:
        logger: Structured logger instance
        scenario_id: Scenario that was simulated
        iterations: Number of iterations executed
        summary: Summary statistics (wire names)
        failed_iterations: Iterations whose outcome could not be evaluated
        duration_ms: Wall time of the run in milliseconds
    """
    fields: Dict[str, Any] = {
        "scenario_id": scenario_id,
        "iterations": iterations,
        "median": summary.get("median"),
        "percent_positive": summary.get("percentPositive"),
        "failed_iterations": failed_iterations,
    }
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)

    logger.info("simulation_run_complete", **fields)


def log_performance(logger: Optional[structlog.BoundLogger] = None):
    """Decorator logging how long the wrapped call took.

    Success is logged at debug level as ``function_executed``; a failure
    is logged as ``function_failed`` and re-raised.
    """

    def decorator(func):
        target = logger or get_logger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                target.error(
                    "function_failed",
                    function=func.__name__,
                    duration_ms=_elapsed_ms(started),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise
            target.debug(
                "function_executed", function=func.__name__, duration_ms=_elapsed_ms(started)
            )
            return result

        return wrapper

    return decorator


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
