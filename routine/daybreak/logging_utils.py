"""
Logging utilities for structured logging
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_ATTRS = (
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, ensure_ascii=False, default=str)


class RoutineContextFilter(logging.Filter):
    """Attach stage and audio-owner context to routine log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter log records"""
        # APScheduler logs every interval run of the pre-warm job at INFO
        if record.name.startswith("apscheduler.executors") and record.levelno < logging.WARNING:
            return False

        if hasattr(record, 'stage'):
            record.stage_context = {
                "stage": record.stage,
                "run_id": getattr(record, 'run_id', None)
            }

        if hasattr(record, 'owner'):
            record.owner_context = {
                "owner": record.owner
            }

        return True


def setup_logging(log_level: str = "INFO", log_format: str = "json",
                  log_file: Optional[str] = None) -> None:
    """
    Setup structured logging for the routine service.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ("json", "simple" or "text")
        log_file: Optional log file path
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    if log_format.lower() == "json":
        formatter = JSONFormatter()
    elif log_format.lower() == "simple":
        formatter = logging.Formatter(
            '%(asctime)s INFO %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RoutineContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RoutineContextFilter())
        root_logger.addHandler(file_handler)

    logging.getLogger('apscheduler').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('comtypes').setLevel(logging.WARNING)

    logging.getLogger('uvicorn.access').disabled = True


def get_logger(name: str) -> logging.Logger:
    """
    Get logger with routine context.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_stage_start(logger: logging.Logger, stage: str, run_id: int,
                    **kwargs) -> None:
    """
    Log the start of a routine stage.

    Args:
        logger: Logger instance
        stage: Stage name
        run_id: Routine run the stage belongs to
        **kwargs: Additional context
    """
    logger.info(
        f"Starting stage: {stage}",
        extra={
            "stage": stage,
            "run_id": run_id,
            "stage_action": "start",
            **kwargs
        }
    )


def log_stage_end(logger: logging.Logger, stage: str, run_id: int,
                  duration_ms: Optional[int] = None, success: bool = True,
                  **kwargs) -> None:
    """
    Log the end of a routine stage.

    Args:
        logger: Logger instance
        stage: Stage name
        run_id: Routine run the stage belongs to
        duration_ms: Stage duration in milliseconds
        success: Whether the stage was successful
        **kwargs: Additional context
    """
    logger.info(
        f"Completed stage: {stage} (success: {success})",
        extra={
            "stage": stage,
            "run_id": run_id,
            "stage_action": "end",
            "duration_ms": duration_ms,
            "success": success,
            **kwargs
        }
    )


def log_owner_change(logger: logging.Logger, old_owner: str, new_owner: str,
                     **kwargs) -> None:
    """
    Log audio ownership changes.

    Args:
        logger: Logger instance
        old_owner: Previous owner
        new_owner: New owner
        **kwargs: Additional context
    """
    logger.info(
        f"Audio owner change: {old_owner} -> {new_owner}",
        extra={
            "owner": new_owner,
            "event_type": "owner_change",
            "old_owner": old_owner,
            "new_owner": new_owner,
            **kwargs
        }
    )


def log_wake_signal(logger: logging.Logger, source: str, identity: Optional[str],
                    emitted: bool, **kwargs) -> None:
    """
    Log an incoming wake signal and whether it produced an alarm-fired event.

    Args:
        logger: Logger instance
        source: Wake signal source
        identity: Trigger identity carried by the signal
        emitted: Whether an alarm-fired event was emitted
        **kwargs: Additional context
    """
    logger.info(
        f"Wake signal: {source} (emitted: {emitted})",
        extra={
            "event_type": "wake_signal",
            "wake_source": source,
            "trigger_identity": identity,
            "emitted": emitted,
            **kwargs
        }
    )


def log_error(logger: logging.Logger, where: str, error: Exception,
              context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log errors with context.

    Args:
        logger: Logger instance
        where: Component or stage that hit the error
        error: Exception that occurred
        context: Additional context
    """
    logger.error(
        f"Error occurred in {where}: {str(error)}",
        extra={
            "component": where,
            "event_type": "error",
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context or {}
        },
        exc_info=error
    )


def log_report(logger: logging.Logger, report: Dict[str, Any]) -> None:
    """
    Log a finished routine run.

    Args:
        logger: Logger instance
        report: Routine report data
    """
    logger.info(
        f"Routine report for run {report.get('run_id')}",
        extra={
            "event_type": "routine_report",
            "report": report
        }
    )
