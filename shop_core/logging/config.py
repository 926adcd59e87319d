# =============================================================================
# shop_core/logging/config.py
# Process-wide logging for the dashboards and the sync core
# =============================================================================
"""
Every module logs through `get_logger(__name__)`; `setup_logging` is called
once by app.py. Records go to stdout and, unless disabled, to one file per
day under `logs/` so a till's offline session can be read back later.

The HTTP stack under supabase (httpx, postgrest, gotrue) logs each request at
INFO and is held at WARNING.
"""

import logging
import sys
import time
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from shop_core.errors import ConfigurationError

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_DIR = Path("logs")

QUIET_LIBRARIES = ("urllib3", "httpx", "httpcore", "hpack", "supabase", "postgrest", "gotrue")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"Unknown log level: {level!r}", config_key="log_level")
    return resolved


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = True,
    log_dir: Union[str, Path] = LOG_DIR,
    log_filename: Optional[str] = None,
) -> Optional[Path]:
    """
    Install the stdout (and daily file) handlers on the root logger.

    Args:
        level: Level number or name ("DEBUG", "info", ...)
        log_to_file: Also write to log_dir
        log_dir: Directory of the log files, created when missing
        log_filename: Overrides the default boutique_YYYY-MM-DD.log

    Returns:
        Path of the log file, or None when only stdout is used
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_path = None

    if log_to_file:
        log_path = Path(log_dir) / (log_filename or f"boutique_{date.today():%Y-%m-%d}.log")
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=_resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("shop_core").info(
        f"Logging ready ({logging.getLevelName(logging.getLogger().level)}"
        f"{f', file {log_path}' if log_path else ''})"
    )
    return log_path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Log the start, duration and outcome of a block.

    Set `summary` inside the block to append it to the completion line:

        with LogContext(logger, "Replaying 3 offline action(s)") as ctx:
            report = queue.drain_in_order(apply)
            ctx.summary = f"{len(report.applied)} applied"
        # Replaying 3 offline action(s)... done in 0.42s: 3 applied

    Exceptions are logged with their traceback and re-raised.
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.summary: Optional[str] = None
        self.elapsed: Optional[float] = None
        self._started = 0.0

    def __enter__(self) -> "LogContext":
        self._started = time.perf_counter()
        self.logger.log(self.level, f"{self.operation}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self._started
        if exc_type is not None:
            self.logger.error(f"{self.operation}... failed after {self.elapsed:.2f}s: {exc_val}", exc_info=True)
            return False

        line = f"{self.operation}... done in {self.elapsed:.2f}s"
        if self.summary:
            line += f": {self.summary}"
        self.logger.log(self.level, line)
        return False
