"""Structured logging configuration."""

import logging
import os
import sys
from typing import Any


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure structured logging for the application.

    Module loggers created with ``logging.getLogger(__name__)`` under the
    ``commercialx`` namespace propagate to the handler installed here.
    """
    logger = logging.getLogger("commercialx")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    # Format: timestamp - level - module - message
    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


# Global logger instance
logger = setup_logging(os.environ.get("LOG_LEVEL", "INFO"))


def log_request(method: str, path: str, **kwargs: Any) -> None:
    """Log an incoming request."""
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.info(f"REQUEST {method} {path} {extra}".strip())


def log_response(method: str, path: str, status: int, duration_ms: float) -> None:
    """Log an outgoing response."""
    logger.info(
        f"RESPONSE {method} {path} status={status} duration_ms={duration_ms:.2f}"
    )


def log_error(message: str, exc: Exception | None = None, **kwargs: Any) -> None:
    """Log an error with optional exception."""
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    if exc:
        logger.error(f"ERROR {message} {extra}".strip(), exc_info=exc)
    else:
        logger.error(f"ERROR {message} {extra}".strip())


def log_db_query(
    operation: str, table: str, duration_ms: float | None = None, rows: int | None = None
) -> None:
    """Log a catalog store operation."""
    parts = [f"DB {operation} table={table}"]
    if rows is not None:
        parts.append(f"rows={rows}")
    if duration_ms:
        parts.append(f"duration_ms={duration_ms:.2f}")
    logger.debug(" ".join(parts))


def log_external_call(
    service: str,
    operation: str,
    success: bool,
    duration_ms: float | None = None,
    status_code: int | None = None,
) -> None:
    """Log an upstream data provider call (NHTSA, EPA)."""
    parts = [f"EXTERNAL {service} {operation} status={'success' if success else 'failed'}"]
    if status_code is not None:
        parts.append(f"http_status={status_code}")
    if duration_ms:
        parts.append(f"duration_ms={duration_ms:.2f}")
    log = logger.info if success else logger.warning
    log(" ".join(parts))


def log_resolution(
    entity: str, entity_id: int, config_id: int, created: bool, competing: int = 0
) -> None:
    """Log the outcome of a catalog find-or-create."""
    outcome = "created" if created else "matched"
    message = f"CATALOG {entity} {outcome} id={entity_id} config_id={config_id}"
    if competing:
        message += f" competing={competing}"
    logger.info(message)
