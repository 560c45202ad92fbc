import json
import logging
import os
import sys
from contextlib import contextmanager
from loguru import logger as _loguru_logger
from typing import Optional

_LOGGING_CONFIGURED = False
_logger = _loguru_logger


def production_log_sink(message):
    """Flatten loguru's serialized record into one JSON object per line.

    Used when ENV=production so sync jobs can be shipped to a log aggregator.
    """
    try:
        full_record = json.loads(message)
        record = full_record.get("record", full_record)
    except (json.JSONDecodeError, AttributeError):
        sys.stdout.write(message)
        sys.stdout.flush()
        return

    log_data = {
        "timestamp": record.get("time", {}).get("repr", ""),
        "level": record.get("level", {}).get("name", "INFO"),
        "logger": record.get("extra", {}).get("name", record.get("name", "unknown")),
        "function": record.get("function", ""),
        "line": record.get("line", 0),
        "message": record.get("message", ""),
    }

    # index_key, source_type etc. from log_context()
    for key, value in record.get("extra", {}).items():
        if key != "name":
            log_data[key] = value

    exc = record.get("exception")
    if exc:
        exc_type = exc.get("type")
        log_data["exception"] = {
            "type": exc_type.get("name", "Exception")
            if isinstance(exc_type, dict)
            else str(exc_type or "Exception"),
            "value": exc.get("value", ""),
            "traceback": exc.get("traceback", ""),
        }

    sys.stdout.write(json.dumps(log_data, default=str) + "\n")
    sys.stdout.flush()


class InterceptHandler(logging.Handler):
    """Route standard library logging (SDKs, httpx, boto3) through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        frame, depth = sys._getframe(6), 6
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(level: Optional[str] = None):
    """
    Configure loguru for the connectors package.

    The level comes from the argument, then LOG_LEVEL, then INFO. ENV=production
    switches to flat JSON lines; anything else gets a colored console format.
    Third-party loggers used by the sources and stores are intercepted at a
    quieter level so a sync run is not drowned in HTTP chatter.
    """
    global _LOGGING_CONFIGURED, _logger

    if _LOGGING_CONFIGURED:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    env = os.getenv("ENV", "development")

    _logger.remove()

    def patcher(record):
        if "name" not in record["extra"]:
            record["extra"]["name"] = record.get(
                "name", record.get("module", "unknown")
            )

    _logger = _logger.patch(patcher)

    if env == "production":
        _logger.add(
            production_log_sink,
            format="{message}",
            level=level,
            serialize=True,
        )
    else:
        _logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
            level=level,
            colorize=True,
        )

    intercept_handler = InterceptHandler()

    library_levels = {
        "context_connectors": level,
        # HTTP clients
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "urllib3": "WARNING",
        # VCS SDKs
        "github": "WARNING",
        "gitlab": "WARNING",
        "git": "WARNING",
        # AWS
        "boto3": "WARNING",
        "botocore": "WARNING",
        "s3transfer": "WARNING",
    }

    logging.basicConfig(
        handlers=[intercept_handler],
        level=logging.DEBUG if level == "DEBUG" else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        force=True,
    )

    for logger_name, log_level in library_levels.items():
        lib_logger = logging.getLogger(logger_name)
        lib_logger.handlers = [intercept_handler]
        lib_logger.setLevel(log_level)
        lib_logger.propagate = False

    logging.getLogger().setLevel(logging.WARNING)

    _LOGGING_CONFIGURED = True


@contextmanager
def log_context(**kwargs):
    """
    Attach ids to every log line emitted inside the block.

    Usage:
        with log_context(index_key=key, source_type="github"):
            logger.info("Starting sync")
    """
    with _logger.contextualize(**kwargs):
        yield


def setup_logger(name: str):
    """Return a loguru logger bound to ``name``, configuring logging on first use."""
    if not _LOGGING_CONFIGURED:
        configure_logging()

    return _logger.bind(name=name)


def set_library_log_level(library_name: str, level: str):
    """Adjust one library's level at runtime, e.g. ``set_library_log_level("httpx", "DEBUG")``."""
    lib_logger = logging.getLogger(library_name)
    lib_logger.setLevel(level)
    _logger.info(f"Set log level for '{library_name}' to {level}")
