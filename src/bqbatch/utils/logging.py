import structlog
import logging
import inspect
from typing import Any
from bqbatch.config import get_settings
from bqbatch.config_constants import LogFormat
from bqbatch.utils.tracing import current_batch_id

# Module-level flag to prevent multiple configuration
_logging_configured = False


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Custom processor to add a short module name to log records.

    "bqbatch.services.batch_executor" becomes "services.batch_executor".
    """
    logger_name = event_dict.get('logger', 'unknown')

    if logger_name.startswith('bqbatch.'):
        module_parts = logger_name.split('.')
        event_dict['module'] = '.'.join(module_parts[-2:])
    else:
        event_dict['module'] = logger_name

    return event_dict


def _add_batch_id(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Attach the current batch id unless the caller passed one explicitly."""
    if 'batch_id' not in event_dict:
        batch_id = current_batch_id()
        if batch_id is not None:
            event_dict['batch_id'] = batch_id
    return event_dict


def _console_formatter(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """
    Development-friendly formatter for better readability.

    Formats logs in a human-readable way with colors and proper spacing.
    """
    timestamp = event_dict.get('timestamp', '')
    level = event_dict.get('level', '').upper()
    module = event_dict.get('module', '')
    event = event_dict.get('event', '')
    batch_id = event_dict.get('batch_id', '')

    colors = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    reset = '\033[0m'

    color = colors.get(level, '')

    main_msg = f"{timestamp} {color}[{level}]{reset} {module}: {event}"

    if batch_id:
        main_msg += f" (batch: {batch_id[:8]})"

    skip_fields = {'timestamp', 'level', 'module', 'event', 'batch_id', 'logger'}
    other_fields = [f"{key}={value}" for key, value in event_dict.items() if key not in skip_fields]

    if other_fields:
        main_msg += f" | {', '.join(other_fields)}"

    return main_msg


def configure_logging() -> None:
    """Configure structured logging for the library."""

    global _logging_configured

    # ---- guard: run only once ----
    if _logging_configured:
        return
    _logging_configured = True

    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.app.log_level.value),
        handlers=[logging.StreamHandler()]
    )

    if settings.app.log_format == LogFormat.CONSOLE:
        renderer = _console_formatter
    else:
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False, default=str)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,  # Adds 'logger' field with module name
            structlog.stdlib.add_log_level,    # Adds 'level' field
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_module_info,
            _add_batch_id,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name, typically __name__ to get the module name

    Returns:
        structlog logger

    Usage:
        logger = get_logger(__name__)
        logger.info("Batch dispatched", request_count=12)

        # Output (JSON format):
        # {"event": "Batch dispatched", "request_count": 12, "logger": "bqbatch.services.batch_executor",
        #  "level": "info", "timestamp": "2026-01-22T10:30:00Z", "module": "services.batch_executor",
        #  "batch_id": "4f0c..."}
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """
    Get a logger for the calling module automatically.

    Note:
        Falls back to 'unknown' module name if frame inspection fails.
    """
    module_name = 'unknown'
    frame = None

    try:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            module_name = frame.f_back.f_globals.get('__name__', 'unknown')
    except (AttributeError, RuntimeError):
        # Frame inspection can fail in some environments (e.g., some REPL implementations)
        pass
    finally:
        # Clean up frame references to avoid reference cycles
        if frame is not None:
            del frame

    return get_logger(module_name)
