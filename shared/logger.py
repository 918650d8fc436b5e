"""
Xray Structured Logger
=======================

Provides :class:`ToolLogger`, a small facade over :mod:`logging` that writes
Rich-formatted records to stderr and, optionally, plain-text or JSON-lines
records to a rotating log file.

Only the inspection engine and the command line log.  The format decoders
are pure functions of their input and never touch a logger.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
        "log.level.critical": "bold white on red",
    }
)

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CONTEXT_FIELDS = ("tool_name", "operation", "source")
_STANDARD_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


class _JSONLineFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Example::

        {"timestamp": "2024-05-01T10:00:00+00:00", "level": "WARNING",
         "logger": "xray.engine", "message": "corrupt input",
         "tool_name": "engine", "source": "a.dll",
         "extra": {"kind": "unmapped_address"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in _CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                entry[attr] = value

        fields = getattr(record, "xray_fields", None)
        if fields:
            entry["extra"] = fields

        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _stderr_handler(level: int) -> RichHandler:
    return RichHandler(
        console=Console(theme=_LOG_THEME, stderr=True),
        level=level,
        show_path=False,
        show_time=True,
        rich_tracebacks=True,
        markup=False,
    )


class ToolLogger:
    """Logger bound to one Xray component.

    Every record carries the component name and, while one is active, the
    current operation and input label.  Extra keyword arguments passed to a
    log call end up under ``extra`` in JSON output.

    Usage::

        log = ToolLogger("engine", log_file="xray.log", json_logs=True)
        with log.operation("inspect", source="libfoo.so"):
            log.info("format detected", format="elf")

    Args:
        tool_name: Component name; the stdlib logger is ``xray.<tool_name>``.
        log_level: Minimum severity name.
        log_file: Rotating log file, or ``None`` for stderr only.
        json_logs: Emit JSON lines instead of text to *log_file*.
        max_bytes: Rotation threshold for *log_file*.
        backup_count: Number of rotated files kept.
        console_output: Attach the Rich stderr handler.
    """

    def __init__(
        self,
        tool_name: str,
        *,
        log_level: str = "WARNING",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 5_242_880,
        backup_count: int = 3,
        console_output: bool = True,
    ) -> None:
        self._tool_name = tool_name
        # Scope is per thread; batch decodes run on a thread pool.
        self._scope = threading.local()

        level = _level(log_level)
        self._logger = logging.getLogger(f"xray.{tool_name}")
        self._logger.setLevel(level)
        self._logger.propagate = False
        for old in list(self._logger.handlers):
            self._logger.removeHandler(old)
            old.close()

        if console_output:
            self._logger.addHandler(_stderr_handler(level))

        if log_file is not None:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            handler.setLevel(level)
            handler.setFormatter(
                _JSONLineFormatter() if json_logs
                else logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
            )
            self._logger.addHandler(handler)

        if not self._logger.handlers:
            self._logger.addHandler(logging.NullHandler())

    # ------------------------------------------------------------------ #
    #  Context
    # ------------------------------------------------------------------ #

    class _Scope:
        """Binds an operation name and input label for its duration."""

        def __init__(self, owner: ToolLogger, operation: str, source: str | None) -> None:
            self._owner = owner
            self._operation = operation
            self._source = source
            self._saved: tuple[str | None, str | None] = (None, None)

        def __enter__(self) -> ToolLogger:
            self._saved = self._owner._current()
            self._owner._scope.value = (self._operation, self._source)
            return self._owner

        def __exit__(self, *exc: Any) -> None:
            self._owner._scope.value = self._saved

    def _current(self) -> tuple[str | None, str | None]:
        return getattr(self._scope, "value", (None, None))

    def operation(self, name: str, source: str | None = None) -> _Scope:
        """Attach ``operation`` (and optionally ``source``) to nested records."""
        return self._Scope(self, name, source)

    class _Timer:
        """Logs the wall-clock duration of its block at DEBUG level."""

        def __init__(self, owner: ToolLogger, label: str) -> None:
            self._owner = owner
            self._label = label
            self._start = 0.0
            self.elapsed = 0.0

        def __enter__(self) -> ToolLogger._Timer:
            self._start = time.perf_counter()
            return self

        def __exit__(self, *exc: Any) -> None:
            self.elapsed = time.perf_counter() - self._start
            self._owner.debug("%s took %.3f sec", self._label, self.elapsed)

    def timed(self, label: str) -> _Timer:
        """Measure a block; the duration is available as ``.elapsed``."""
        return self._Timer(self, label)

    # ------------------------------------------------------------------ #
    #  Log methods
    # ------------------------------------------------------------------ #

    def _log(self, level: int, msg: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        extra = dict(kwargs.pop("extra", None) or {})
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _STANDARD_KWARGS}

        extra["tool_name"] = self._tool_name
        extra["operation"], extra["source"] = self._current()
        if fields:
            extra["xray_fields"] = fields
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, args, kwargs)

    @property
    def tool_name(self) -> str:
        return self._tool_name

    @property
    def underlying(self) -> logging.Logger:
        """The wrapped stdlib :class:`logging.Logger`."""
        return self._logger
