"""Logging configuration for LensFlow."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import colorlog

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    enable_color: bool = True,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """Set up logging configuration."""
    level = getattr(logging, log_level.upper())
    logger = logging.getLogger("lensflow")
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if enable_color:
        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s" + CONSOLE_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            }
        )
    else:
        console_formatter = logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT)

    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if enable_file_logging and log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)

        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt=DATE_FORMAT
        )
        logger.addHandler(_rotating_handler(log_dir / "lensflow.log", logging.DEBUG, file_formatter))
        logger.addHandler(_rotating_handler(log_dir / "errors.log", logging.ERROR, file_formatter))

        audit_logger = get_audit_logger()
        audit_logger.handlers.clear()
        audit_logger.addHandler(_rotating_handler(
            log_dir / "audit.log",
            logging.INFO,
            logging.Formatter("%(asctime)s - AUDIT - %(message)s", datefmt=DATE_FORMAT),
        ))
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """Get a logger instance namespaced under ``lensflow``."""
    if name is None:
        name = "lensflow"
    elif not name.startswith("lensflow"):
        name = f"lensflow.{name}"

    return logging.getLogger(name)


def get_audit_logger() -> logging.Logger:
    """Get the audit logger for credential and job events."""
    return logging.getLogger("lensflow.audit")


def audit_log(operation: str, **details):
    """Log an audit event with optional details."""
    audit_logger = get_audit_logger()

    detail_str = " ".join([f"{k}={v}" for k, v in details.items()])

    if detail_str:
        audit_logger.info(f"{operation} - {detail_str}")
    else:
        audit_logger.info(operation)
