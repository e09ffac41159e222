"""Logging configuration for crowbar-init.

Configures structlog with JSON output for the web server, human-readable for
CLI mode, and writes the web server's request access log.
"""

import logging
import sys
from pathlib import Path

import structlog

ACCESS_LOGGER = "crowbar_init.access"

# Log each outgoing request at INFO; capped at WARNING
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level: str = "info",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging for the application.

    Called once on startup. Configures both standard logging and structlog.

    Args:
        level: Log level (debug, info, warning, error, critical)
        log_file: Optional path to log file (for the web server)
        json_output: If True, output JSON format

    Usage:
        Server mode: configure_logging(level, log_file=path, json_output=True)
        CLI mode: configure_logging(level) (stderr, human-readable)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path))
        file_handler.setLevel(log_level)
        handlers.append(file_handler)
    else:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(log_level)
        handlers.append(stream_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration: float,
    client: str | None = None,
) -> None:
    """Write one access log record for a served HTTP request.

    The web server logs its own requests (uvicorn's access log is off) so
    they land in the server log file with the application's records.

    Args:
        method: HTTP method
        path: Request path without query string
        status_code: Response status
        duration: Seconds spent handling the request
        client: Remote address, if known
    """
    get_logger(ACCESS_LOGGER).info(
        f"{method} {path} {status_code}",
        method=method,
        path=path,
        status=status_code,
        duration_ms=round(duration * 1000, 1),
        client=client,
    )
