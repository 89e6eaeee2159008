"""
Core logging functionality for the BLE adapter.

All modules log through children of the ``bleadapter`` logger.  The process
entry point calls :func:`configure_logging` once to attach a size-rotated file
sink; rotated files older than the retention period are pruned.
"""

import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional, Union

from . import config

_LOGGER_NAME = "bleadapter"
_FORMAT = "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d: %(message)s"

# Root logger for the adapter
_logger = logging.getLogger(_LOGGER_NAME)
_logger.addHandler(logging.NullHandler())


class RetentionRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """Size-based rotation that also drops backups older than *max_age_days*."""

    def __init__(
        self,
        filename: Union[str, Path],
        max_bytes: int = config.LOG_MAX_BYTES,
        backup_count: int = config.LOG_BACKUP_COUNT,
        max_age_days: int = config.LOG_MAX_AGE_DAYS,
    ):
        super().__init__(
            str(filename), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        self.max_age_days = max_age_days
        self.prune()

    def doRollover(self) -> None:
        super().doRollover()
        self.prune()

    def prune(self, now: Optional[float] = None) -> int:
        """Delete rotated files past the retention period; return how many went."""
        if self.max_age_days <= 0:
            return 0
        cutoff = (now if now is not None else time.time()) - self.max_age_days * 86400
        base = Path(self.baseFilename)
        removed = 0
        for candidate in base.parent.glob(base.name + ".*"):
            try:
                if candidate.stat().st_mtime < cutoff:
                    candidate.unlink()
                    removed += 1
            except OSError:
                # Vanished or not removable; rotation continues regardless
                continue
        return removed


def parse_level(name: str) -> int:
    """Map a CLI level name (debug, warn, error) to a logging level."""
    try:
        return config.LOG_LEVELS[name.lower()]
    except (KeyError, AttributeError):
        raise ValueError(
            f"invalid log level {name!r}; expected one of {', '.join(config.LOG_LEVELS)}"
        ) from None


def configure_logging(
    level: Union[str, int] = config.DEFAULT_LOG_LEVEL,
    log_file: Optional[Union[str, Path]] = config.LOG_FILE,
) -> logging.Logger:
    """Attach the file sink to the adapter logger and set its level.

    Falls back to stderr when *log_file* is ``None`` or cannot be opened.
    Calling it again replaces the previously installed handlers.
    """
    numeric = parse_level(level) if isinstance(level, str) else int(level)

    for old in list(_logger.handlers):
        if not isinstance(old, logging.NullHandler):
            _logger.removeHandler(old)
            old.close()

    handler: logging.Handler
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handler = RetentionRotatingFileHandler(log_file)
        except OSError as exc:
            handler = logging.StreamHandler(sys.stderr)
            print(f"[-] Unable to open log file {log_file}: {exc}; logging to stderr", file=sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter(_FORMAT))
    _logger.addHandler(handler)
    _logger.setLevel(numeric)
    return _logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger with the specified name.

    This is the preferred way for modules to obtain a logger: pass
    ``__name__`` and the record ends up under the ``bleadapter`` hierarchy.
    """
    if not name or name == _LOGGER_NAME:
        return _logger
    if name.startswith(_LOGGER_NAME + "."):
        name = name[len(_LOGGER_NAME) + 1:]
    return _logger.getChild(name)


__all__ = [
    "RetentionRotatingFileHandler",
    "configure_logging",
    "get_logger",
    "parse_level",
]
