# src/taskflow/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Background layers whose INFO chatter would interleave with the REPL prompt.
_QUIET_ON_CONSOLE = ("taskflow.storage.", "taskflow.core.pending")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while background writes are running:
    - taskflow logs pass, except storage/pending-write chatter below WARNING
    - Python warnings (captured as 'py.warnings') and third-party libraries
      (httpx, httpcore, asyncio) only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("taskflow."):
            if name.startswith(_QUIET_ON_CONSOLE):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / ... -> logging level; unknown names fall back to `default`."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskflow",
    app_name: str = "taskflow",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure the root logger with a filtered console handler and a full
    file log at `<log_dir>/<app_name>.log`. Returns the log file path.

    Call this once, before the first log line.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{app_name}.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    # Request lines from httpx are noise even in the file log.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file
