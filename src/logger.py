"""Structured JSON logging configuration using loguru.

Two sinks are installed:
- Colorized console output for operators watching a campaign run
- Rotating JSON-lines files for later analysis of per-task outcomes

Every module logs through `get_logger(__name__)` and passes context as
keyword arguments (player id, grade, url) so a single campaign can be
filtered out of the aggregated files.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from config.settings import GlobalConfig, get_config
from src.exceptions import LoggingInitializationError

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> | "
    "<level>{message}</level>"
)

LOG_FILE_PATTERN = "playervalue_{time:YYYY-MM-DD}.json"


def _json_line(record: dict[str, Any]) -> str:
    """Render a loguru record as one JSON line.

    Keyword context passed to the log call ends up under "context"; the
    player id and grade keep their native types so log queries can filter
    on them numerically.
    """
    line: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": f"{record['name']}:{record['function']}:{record['line']}",
    }

    exception = record["exception"]
    if exception is not None:
        line["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    context = {k: v for k, v in record["extra"].items() if k != "serialized"}
    if context:
        line["context"] = context

    return json.dumps(line, default=str, ensure_ascii=False) + "\n"


def _serialize_filter(record: dict[str, Any]) -> bool:
    record["extra"]["serialized"] = _json_line(record)
    return True


def _prepare_log_directory(log_dir: Path) -> None:
    """Create the log directory and prove it is writable.

    Raises:
        LoggingInitializationError: If the directory cannot be used.
    """
    marker = log_dir / ".write_check"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        marker.write_text("ok")
        marker.unlink()
    except PermissionError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir), reason=f"Permission denied: {exc}"
        ) from exc
    except OSError as exc:
        raise LoggingInitializationError(
            log_dir=str(log_dir), reason=f"Directory not usable: {exc}"
        ) from exc


def _add_console_sink(config: GlobalConfig) -> None:
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=config.log_level,
        colorize=True,
        backtrace=config.debug,
        diagnose=config.debug,
    )


def _add_json_sink(config: GlobalConfig) -> None:
    logger.add(
        str(config.log_dir / LOG_FILE_PATTERN),
        format="{extra[serialized]}",
        level=config.log_level,
        rotation=config.log_rotation,
        retention=config.log_retention,
        compression="gz",
        filter=_serialize_filter,
    )


def configure_logging(config: GlobalConfig | None = None) -> None:
    """Install the console and JSON file sinks.

    Call once during bootstrap, before the first campaign log line.

    Raises:
        LoggingInitializationError: If the log directory is not writable.
    """
    config = config or get_config()

    logger.remove()
    logger.configure(extra={"module": "-"})
    _prepare_log_directory(config.log_dir)

    _add_console_sink(config)
    _add_json_sink(config)

    logger.info(
        "Logging infrastructure initialized",
        app_name=config.app_name,
        environment=config.environment,
        log_level=config.log_level,
        log_dir=str(config.log_dir),
    )


def get_logger(name: str) -> "logger":
    """Logger bound with the module name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Valuation extracted", entity_id=256200104, grade=3)
    """
    return logger.bind(module=name)
