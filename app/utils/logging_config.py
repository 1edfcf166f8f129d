"""
Logging setup for the Candidate Match Service

Console output plus daily log files under ``LOG_DIR``; the environment
profile (``ENVIRONMENT``) decides level, format and whether files are written.
"""
import functools
import inspect
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER_PREFIX = "match_service"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-36s | %(funcName)-24s:%(lineno)-4d | %(message)s",
}

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = {
    "pdfminer": "ERROR",
    "urllib3": "WARNING",
    "pymongo": "WARNING",
    "httpx": "WARNING",
}

# level=None means "use LOG_LEVEL"
ENVIRONMENT_PROFILES = {
    "production": {"level": None, "files": True, "format": "detailed"},
    "development": {"level": "DEBUG", "files": True, "format": "detailed"},
    "testing": {"level": "WARNING", "files": False, "format": "simple"},
}


def _file_handler(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": LOG_BACKUPS,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Configure root, uvicorn and library loggers

    Args:
        level: Logging level for service loggers
        log_file: Main log path (defaults to LOG_DIR/match_service_<date>.log)
        enable_console: Write to stdout
        enable_file: Write the main and errors-only log files
        format_style: 'simple' or 'detailed'
    """
    stamp = datetime.now().strftime('%Y%m%d')
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)
    main_log = Path(log_file) if log_file else log_dir / f"match_service_{stamp}.log"

    handlers: Dict[str, Any] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": format_style if format_style in FORMATS else "detailed",
            "stream": "ext://sys.stdout",
        }
    if enable_file:
        handlers["file"] = _file_handler(main_log, level)
        handlers["error_file"] = _file_handler(log_dir / f"match_service_errors_{stamp}.log", "ERROR")

    service_handlers = list(handlers)
    server_handlers = [h for h in handlers if h != "error_file"]

    loggers: Dict[str, Any] = {
        "": {"level": level, "handlers": service_handlers, "propagate": False},
        "uvicorn": {"level": "INFO", "handlers": server_handlers, "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": server_handlers[:1], "propagate": False},
    }
    for name, quiet_level in QUIET_LOGGERS.items():
        loggers[name] = {"level": quiet_level, "handlers": [], "propagate": True}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for name, fmt in FORMATS.items()
        },
        "handlers": handlers,
        "loggers": loggers,
    })

    logger = get_logger("logging")
    logger.info(f"Logging configured - Level: {level}, Console: {enable_console}, File: {enable_file}")
    if enable_file:
        logger.info(f"Log file: {main_log}")


def get_logger(name: str) -> logging.Logger:
    """Logger under the service namespace, e.g. ``match_service.app.services.llm``"""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def configure_for_environment() -> str:
    """Apply the logging profile for ``ENVIRONMENT``; returns the profile name used"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    profile = ENVIRONMENT_PROFILES.get(environment)

    if profile is None:
        setup_logging(level=log_level)
        return environment

    setup_logging(
        level=profile["level"] or log_level,
        enable_console=True,
        enable_file=profile["files"],
        format_style=profile["format"],
    )
    return environment


def _log_outcome(logger: logging.Logger, name: str, started: float, error: Optional[Exception] = None) -> None:
    elapsed = time.time() - started
    if error is None:
        logger.debug(f"Completed {name} in {elapsed:.3f}s")
    else:
        logger.error(f"Error in {name} after {elapsed:.3f}s: {error}")


def log_function_call(func):
    """Debug-log entry and duration of a call; failures are logged and re-raised"""
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        logger.debug(f"Entering {func.__name__} with args={len(args)}, kwargs={list(kwargs)}")
        started = time.time()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            _log_outcome(logger, func.__name__, started, e)
            raise
        _log_outcome(logger, func.__name__, started)
        return result

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        logger.debug(f"Entering {func.__name__} with args={len(args)}, kwargs={list(kwargs)}")
        started = time.time()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _log_outcome(logger, func.__name__, started, e)
            raise
        _log_outcome(logger, func.__name__, started)
        return result

    return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper


class PerformanceMonitor:
    """Times a block (PDF extraction, LLM call, batch run) and logs slow ones as warnings"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.start_time = None
        self.elapsed_ms = 0.0

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.time() - self.start_time) * 1000
        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation_name} took {self.elapsed_ms:.2f}ms (threshold {self.threshold_ms:.0f}ms)"
            )
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
