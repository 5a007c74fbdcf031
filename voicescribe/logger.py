"""
Logger System - VoiceScribe

Structured, per-category logging.

Features:
- Separate log files per category (system, bot, voice, stt, api, errors)
- Automatic file rotation
- JSON records for files, colored console output (rich)
- Guild / user context stamped on every record

Usage:
    from voicescribe.logger import get_logger

    logger = get_logger("bot")
    logger.info("Connected", extra={"guilds": 3})

    logger = get_logger("voice", guild_id=1234)
    logger.info("Utterance flushed", extra={"duration_ms": 1840})
"""

import logging
import logging.handlers
import json
from datetime import datetime
from typing import Optional, Dict, Any

from rich.logging import RichHandler

from voicescribe.config import config

LOGS_DIR = config.LOGS_DIR

# Sub-directories per category
LOG_DIRS = {
    "system": LOGS_DIR / "system",
    "bot": LOGS_DIR / "bot",
    "voice": LOGS_DIR / "voice",
    "stt": LOGS_DIR / "stt",
    "api": LOGS_DIR / "api",
    "errors": LOGS_DIR / "errors",
}

for dir_path in LOG_DIRS.values():
    dir_path.mkdir(parents=True, exist_ok=True)

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRIBUTES = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName'
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for file logs."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    """Human readable formatter."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def _console_handler() -> logging.Handler:
    if config.LOG_RICH_CONSOLE:
        handler = RichHandler(show_path=False, rich_tracebacks=True, markup=False)
        handler.setFormatter(logging.Formatter('%(name)s | %(message)s'))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(PlainFormatter())
    handler.setLevel(logging.INFO)
    return handler


def setup_logger(
    name: str,
    category: str = "system",
    level: Optional[int] = None,
    json_format: Optional[bool] = None
) -> logging.Logger:
    """
    Configure a logger with its file, console and error handlers.

    Args:
        name: Logger name
        category: Category (system, bot, voice, stt, api, errors)
        level: Log level (default: LOG_LEVEL from config)
        json_format: JSON file records (default: LOG_FORMAT_JSON from config)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    # Already configured
    if logger.handlers:
        return logger

    if level is None:
        level = logging.getLevelName(config.LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = config.LOG_FORMAT_JSON

    logger.setLevel(level)
    logger.propagate = False

    log_dir = LOG_DIRS.get(category, LOGS_DIR / "misc")
    log_dir.mkdir(exist_ok=True)

    date_str = datetime.now().strftime("%Y%m%d")
    log_file = log_dir / f"{category}_{date_str}.log"

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(StructuredFormatter() if json_format else PlainFormatter())
    logger.addHandler(file_handler)

    logger.addHandler(_console_handler())

    # Errors also land in a dedicated file
    if category != "errors":
        error_file = LOG_DIRS["errors"] / f"{category}_errors.log"
        error_handler = logging.handlers.RotatingFileHandler(
            error_file,
            maxBytes=10*1024*1024,
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(StructuredFormatter() if json_format else PlainFormatter())
        logger.addHandler(error_handler)

    return logger


class ContextLogger:
    """Logger wrapper that adds guild/user context to every record."""

    def __init__(self, logger: logging.Logger, guild_id: Optional[int] = None,
                 user_id: Optional[int] = None):
        self.logger = logger
        self.guild_id = guild_id
        self.user_id = user_id

    def _log(self, level, msg, *args, **kwargs):
        extra = dict(kwargs.get('extra') or {})
        if self.guild_id:
            extra.setdefault('guild_id', self.guild_id)
        if self.user_id:
            extra.setdefault('user_id', self.user_id)
        kwargs['extra'] = extra
        getattr(self.logger, level)(msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self._log('debug', msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._log('info', msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._log('warning', msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._log('error', msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        self._log('exception', msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self._log('critical', msg, *args, **kwargs)

    def bind(self, guild_id: Optional[int] = None, user_id: Optional[int] = None) -> "ContextLogger":
        """Same logger, narrower context."""
        return ContextLogger(
            self.logger,
            guild_id=guild_id or self.guild_id,
            user_id=user_id or self.user_id
        )


def get_logger(
    category: str = "system",
    guild_id: Optional[int] = None,
    user_id: Optional[int] = None,
    name: Optional[str] = None
) -> ContextLogger:
    """
    Get a logger for a category.

    Args:
        category: Log category (system, bot, voice, stt, api, errors)
        guild_id: Guild id stamped on records
        user_id: User id stamped on records
        name: Custom logger name (default: voicescribe.<category>)

    Returns:
        ContextLogger

    Examples:
        >>> logger = get_logger("system")
        >>> logger.info("Bot started")

        >>> logger = get_logger("stt", name=__name__)
        >>> logger.debug("Transcription result", extra={"text": "hello", "confidence": 0.93})
    """
    if not name:
        name = f"voicescribe.{category}"

    logger = setup_logger(name=name, category=category)
    return ContextLogger(logger, guild_id, user_id)


def log_command(guild_id: int, author: str, command: str, data: Dict[str, Any] = None):
    """Log a chat command."""
    logger = get_logger("bot", guild_id=guild_id)
    logger.info(
        f"Command {command} from {author}",
        extra={"command": command, "author": author, **(data or {})}
    )


def log_voice_event(guild_id: int, event: str, data: Dict[str, Any] = None):
    """Log a voice connection event."""
    logger = get_logger("voice", guild_id=guild_id)
    logger.info(event, extra=data or {})


def log_utterance_flushed(guild_id: int, user_id: int, user_name: str,
                          duration_ms: int, audio_path: Optional[str]):
    """Log an utterance dumped to disk."""
    logger = get_logger("voice", guild_id=guild_id, user_id=user_id)
    logger.info(
        f"Utterance flushed for {user_name} ({duration_ms}ms)",
        extra={
            "user_name": user_name,
            "duration_ms": duration_ms,
            "audio_path": audio_path
        }
    )


def log_stt_transcription(guild_id: int, user_id: int, audio_duration: float,
                          transcription: str, confidence: float, processing_time: float):
    """Log an STT transcription."""
    logger = get_logger("stt", guild_id=guild_id, user_id=user_id)
    logger.info(
        f"STT transcription: '{transcription}'",
        extra={
            "audio_duration": audio_duration,
            "transcription": transcription,
            "transcription_length": len(transcription),
            "confidence": confidence,
            "processing_time": processing_time,
            "realtime_factor": processing_time / audio_duration if audio_duration > 0 else 0
        }
    )


def log_error(module: str, error: Exception, context: Dict[str, Any] = None):
    """Log an error with its context."""
    logger = get_logger("errors", name=f"error.{module}")
    logger.error(
        f"{error.__class__.__name__}: {str(error)}",
        exc_info=error,
        extra=context or {}
    )
