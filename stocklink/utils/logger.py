"""
Logging utility with timestamps and timing support.
Provides structured, colourful console output for tracking extraction stages.
Optionally writes one log file per extraction when WRITE_TO_FILE is set.

Timers and the log-file handle live in ``contextvars.ContextVar`` so that
each extraction task keeps its own state.
"""

from __future__ import annotations

import contextvars
import io
import os
import pathlib
import re
import sys
import time
from datetime import UTC, datetime

# ============================================================================
# Per-task state (isolated via contextvars)
# ============================================================================

_timers_var: contextvars.ContextVar[dict[str, tuple[float, str]]] = contextvars.ContextVar("_timers_var")
_log_file_stream_var: contextvars.ContextVar[io.TextIOWrapper | None] = contextvars.ContextVar(
    "_log_file_stream_var", default=None
)

_ANSI_RE = re.compile(r"\033\[[0-9;]*m")


def _get_timers() -> dict[str, tuple[float, str]]:
    """Return the per-context timer dict, creating it on first access."""
    try:
        return _timers_var.get()
    except LookupError:
        timers: dict[str, tuple[float, str]] = {}
        _timers_var.set(timers)
        return timers


# ============================================================================
# File Logging
# ============================================================================


def _file_logging_enabled() -> bool:
    return os.environ.get("WRITE_TO_FILE", "").lower() == "true"


def start_log_file(asset_slug: str) -> None:
    """Start a new log file for one extraction attempt."""
    if not _file_logging_enabled():
        return

    end_log_file()

    logs_dir = pathlib.Path.cwd() / ".logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    safe_slug = "".join(c if c.isalnum() or c in ".-" else "_" for c in asset_slug)[:60] or "asset"
    now = datetime.now(UTC)
    log_file_path = logs_dir / f"{safe_slug}_{now.strftime('%Y-%m-%d_%H-%M-%S')}.log"

    try:
        stream = open(log_file_path, "a", encoding="utf-8")  # noqa: SIM115
    except OSError as exc:
        print(f"\033[31m✗ [Logger] Failed to open log file: {exc}\033[0m", file=sys.stderr)
        return

    _log_file_stream_var.set(stream)
    stream.write(f"\n{'=' * 80}\n  Extraction Log - {asset_slug}\n  Started: {now.isoformat()}\n{'=' * 80}\n")
    print(f"\033[36mℹ [Logger] Writing logs to: {log_file_path}\033[0m", file=sys.stderr)


def end_log_file() -> None:
    """Flush and close the current log file."""
    stream = _log_file_stream_var.get(None)
    if stream is None:
        return
    try:
        stream.flush()
        stream.close()
    except OSError:
        print("\033[33m⚠ [Logger] Failed to flush/close log file stream\033[0m", file=sys.stderr)
    _log_file_stream_var.set(None)


def _emit(line: str) -> None:
    """Print a line to stderr and mirror it (without colours) to the log file."""
    print(line, file=sys.stderr)
    stream = _log_file_stream_var.get(None)
    if stream is not None:
        stream.write(_ANSI_RE.sub("", line) + "\n")
        stream.flush()


# ============================================================================
# ANSI Colours
# ============================================================================

_colours = {
    "reset": "\033[0m",
    "bright": "\033[1m",
    "dim": "\033[2m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "gray": "\033[90m",
}

_level_style = {
    "info": (_colours["cyan"], "ℹ"),
    "success": (_colours["green"], "✓"),
    "warn": (_colours["yellow"], "⚠"),
    "error": (_colours["red"], "✗"),
    "debug": (_colours["gray"], "•"),
    "timing": (_colours["cyan"], "⏱"),
}


def _get_timestamp() -> str:
    """Return the current UTC time as HH:MM:SS.mmm."""
    now = datetime.now(UTC)
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


def format_duration(ms: float) -> str:
    """Format a duration in milliseconds for display."""
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.2f}s"
    minutes = int(ms // 60000)
    seconds = (ms % 60000) / 1000
    return f"{minutes}m {seconds:.1f}s"


def _format_value(value: object) -> str:
    """Colour a data value; strings are quoted and capped at 300 characters."""
    c = _colours
    if isinstance(value, str):
        # Signed CDN URLs are long; keep enough to tell them apart.
        display = value[:297] + "..." if len(value) > 300 else value
        return f'{c["green"]}"{display}"{c["reset"]}'
    if isinstance(value, bool) or value is None:
        return f"{c['dim']}{value}{c['reset']}"
    if isinstance(value, (int, float)):
        return f"{c['yellow']}{value}{c['reset']}"
    return f"{c['cyan']}{value}{c['reset']}"


# ============================================================================
# Logger Class
# ============================================================================


class Logger:
    """Structured logger with context prefix and timing support."""

    def __init__(self, context: str = "StockLink") -> None:
        """Create a logger that prefixes messages with *context*."""
        self._context = context

    def _log(self, level: str, message: str, data: dict[str, object] | None = None) -> None:
        """Format and emit a log line at the given level."""
        c = _colours
        colour, symbol = _level_style.get(level, _level_style["info"])
        prefix = (
            f"{c['gray']}[{_get_timestamp()}]{c['reset']} {colour}{symbol}{c['reset']} "
            f"{c['bright']}[{self._context}]{c['reset']}"
        )
        if data:
            data_str = " ".join(f"{c['dim']}{k}={c['reset']}{_format_value(v)}" for k, v in data.items())
            _emit(f"{prefix} {message} {data_str}")
        else:
            _emit(f"{prefix} {message}")

    def info(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log an informational message."""
        self._log("info", message, data)

    def success(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a success message."""
        self._log("success", message, data)

    def warn(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a warning message."""
        self._log("warn", message, data)

    def error(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log an error message."""
        self._log("error", message, data)

    def debug(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a debug-level message."""
        self._log("debug", message, data)

    def start_timer(self, label: str) -> None:
        """Start a named timer for performance measurement."""
        key = f"{self._context}:{label}"
        _get_timers()[key] = (time.monotonic() * 1000, _get_timestamp())
        self._log("timing", f"Starting: {label}")

    def end_timer(self, label: str, message: str | None = None) -> float:
        """Stop a named timer, log the elapsed time and return it in ms."""
        key = f"{self._context}:{label}"
        entry = _get_timers().pop(key, None)
        if entry is None:
            self.warn(f'Timer "{label}" was not started')
            return 0.0

        start_ms, start_ts = entry
        duration = time.monotonic() * 1000 - start_ms
        self._log(
            "timing",
            f"{message or f'Completed: {label}'} took {format_duration(duration)} (started {start_ts})",
        )
        return duration

    def section(self, title: str) -> None:
        """Print a section divider with *title*."""
        rule = "─" * 60
        _emit(f"\n{_colours['bright']}{rule}\n  {title}\n{rule}{_colours['reset']}\n")

    def subsection(self, title: str) -> None:
        """Print a smaller sub-section header."""
        _emit(f"\n{_colours['cyan']}  ▸ {title}{_colours['reset']}")


def create_logger(context: str) -> Logger:
    """Create a logger for a specific module."""
    return Logger(context)
