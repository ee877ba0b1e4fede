"""
Logging setup and helpers for daylist.

Entrypoints call configure_logging() once; library modules only ever do
``logger = logging.getLogger(__name__)``.
"""
import logging
import os
import re
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

_configured = False
_run_id: Optional[str] = None
_HANDLER_TAG = "_daylist_handler"
_CONSOLE_FMT = "%(asctime)s | %(levelname)-5s | %(name)s | %(message)s"
_CONSOLE_FMT_RUN_ID = "%(asctime)s | %(levelname)-5s | %(name)s | run=%(run_id)s | %(message)s"
_FILE_FMT = "%(asctime)s | %(levelname)-5s | %(name)s | %(funcName)s:%(lineno)d | run=%(run_id)s | %(message)s"

_REDACTIONS = [
    # Subsonic auth query parameters (password, token, salt)
    (r"([?&](?:p|t|s)=)[^&\s]+", r"\1***"),
    (r'(["\']?(?:password|token|secret|api[_-]?key)["\']?\s*[:=]\s*["\']?)([^"\'\s,}]+)', r"\1***"),
    (r"/home/[^/]+", "/home/***"),
    (r"/Users/[^/]+", "/Users/***"),
]


class RunIdFilter(logging.Filter):
    """Attach the current run id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id or "-"
        return True


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


def set_run_id(run_id: Optional[str]) -> None:
    global _run_id
    _run_id = run_id


def get_run_id() -> Optional[str]:
    return _run_id


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    file_level: str = "DEBUG",
    force: bool = False,
    run_id: Optional[str] = None,
    console: bool = True,
    show_run_id: bool = False,
) -> None:
    """
    Configure the root logger.

    Calling again is a no-op unless ``force`` is set; handlers installed by a
    previous call are replaced, foreign handlers are left alone.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        file_level: Level for the file handler
        force: Reconfigure even if already configured
        run_id: Identifier stamped on every record
        console: Attach a stdout handler
        show_run_id: Include the run id in console output

    Environment overrides:
        DAYLIST_LOG_LEVEL: replaces ``level``
        DAYLIST_LOG_FILE: used when ``log_file`` is not given
    """
    global _configured

    if run_id:
        set_run_id(run_id)
    if _configured and not force:
        return

    level = os.getenv("DAYLIST_LOG_LEVEL", level).upper()
    if log_file is None:
        log_file = os.getenv("DAYLIST_LOG_FILE")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level, logging.INFO))
        fmt = _CONSOLE_FMT_RUN_ID if (show_run_id or level == "DEBUG") else _CONSOLE_FMT
        console_handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
        console_handler.addFilter(RunIdFilter())
        setattr(console_handler, _HANDLER_TAG, True)
        root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(getattr(logging, file_level.upper(), logging.DEBUG))
        file_handler.setFormatter(logging.Formatter(_FILE_FMT, datefmt="%Y-%m-%d %H:%M:%S"))
        file_handler.addFilter(RunIdFilter())
        setattr(file_handler, _HANDLER_TAG, True)
        root.addHandler(file_handler)

    for noisy in ("urllib3", "requests"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).debug(
        "Logging configured: level=%s file=%s run=%s", level, log_file or "none", _run_id or "-"
    )


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """
    Log how long a block took.

    Usage:
        with stage_timer("Fetch candidates", logger):
            songs = client.get_random_songs(500)
    """
    logger = logger or logging.getLogger(__name__)
    logger.debug("%s starting...", stage_name)
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info("%s completed in %s", stage_name, format_elapsed(time.perf_counter() - start))


def format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:.0f}s"


def redact(value: Any) -> str:
    """
    Mask credentials and home directories before logging.

    Handles Subsonic query strings (``p``, ``t`` and ``s`` parameters),
    key/value pairs such as ``password: hunter2`` and user home paths.
    """
    if value is None:
        return "None"
    text = str(value)
    for pattern, replacement in _REDACTIONS:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
    return text


def format_count(n: int, singular: str, plural: Optional[str] = None) -> str:
    """"1 song" / "12 songs"."""
    if plural is None:
        plural = singular + "s"
    return f"{n:,} {singular if n == 1 else plural}"


def truncate_list(items: List[Any], max_items: int = 3) -> str:
    """"jazz, soul, funk (+4 more)"."""
    if not items:
        return "(none)"
    shown = ", ".join(str(item) for item in items[:max_items])
    if len(items) > max_items:
        shown += f" (+{len(items) - max_items} more)"
    return shown


def add_logging_args(parser) -> None:
    """Add --log-level/--verbose/--quiet/--log-file/--show-run-id to an argparse parser."""
    group = parser.add_argument_group("logging")
    group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config, else INFO)",
    )
    group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Shortcut for --log-level DEBUG",
    )
    group.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Shortcut for --log-level WARNING",
    )
    group.add_argument("--log-file", metavar="PATH", help="Also write logs to this file")
    group.add_argument(
        "--show-run-id",
        action="store_true",
        help="Include the run id in console logs",
    )


def resolve_log_level(args, default: str = "INFO") -> str:
    """Priority: --verbose > --quiet > --log-level > default."""
    if getattr(args, "verbose", False):
        return "DEBUG"
    if getattr(args, "quiet", False):
        return "WARNING"
    return getattr(args, "log_level", None) or default


class RunSummary:
    """
    Collect run metrics and log them as one block at the end.

    Usage:
        summary = RunSummary("Playlist run")
        summary.increment("published")
        summary.log()
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: Dict[str, Union[int, float, str]] = {}
        self.start_time = time.perf_counter()

    def add(self, key: str, value: Union[int, float, str]) -> None:
        self.metrics[key] = value

    def increment(self, key: str, amount: int = 1) -> None:
        self.metrics[key] = self.metrics.get(key, 0) + amount

    def log(self, level: int = logging.INFO) -> None:
        self.logger.log(level, "=" * 60)
        self.logger.log(level, "%s SUMMARY", self.title.upper())
        for key, value in self.metrics.items():
            label = key.replace("_", " ").title()
            if isinstance(value, float):
                self.logger.log(level, "  %s: %.2f", label, value)
            else:
                self.logger.log(level, "  %s: %s", label, value)
        self.logger.log(level, "  Total Time: %s", format_elapsed(time.perf_counter() - self.start_time))
        self.logger.log(level, "=" * 60)
