"""
Centralized logging configuration for bsam model fitting.

Provides JSON Lines logging to files and human-readable console output.
All modules should use get_pipeline_logger() instead of calling
logging.basicConfig() directly.

Usage:
    from bsam.logging_config import get_pipeline_logger
    log = get_pipeline_logger(__name__)
"""

import json
import logging
import os
import time
import uuid
from logging.handlers import RotatingFileHandler


# Module-level run_id bound to every log entry via RunIdFilter.
_run_id = None

# Structured fields copied from ``extra=`` into JSON log entries.
_EXTRA_FIELDS = (
    "step_name", "individual", "model", "input_summary",
    "output_summary", "timing_seconds", "warnings",
)


def get_run_id():
    """Return the current fit run_id, generating one if needed."""
    global _run_id
    if _run_id is None:
        _run_id = str(uuid.uuid4())[:8]
    return _run_id


def set_run_id(run_id=None):
    """Set (or regenerate) the fit run_id."""
    global _run_id
    _run_id = run_id or str(uuid.uuid4())[:8]
    return _run_id


class RunIdFilter(logging.Filter):
    """Inject run_id into every log record."""

    def filter(self, record):
        record.run_id = get_run_id()
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as JSON Lines for machine parsing."""

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S.") +
                         f"{int(record.msecs):03d}",
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "run_id": getattr(record, "run_id", None),
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console format."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


_configured = False
_run_dir_handler = None


def setup_logging(run_dir=None, console_level=None, file_level=logging.DEBUG,
                  log_dir=None):
    """Configure the ``bsam`` logger with console and file handlers.

    Call once at the entry point. Subsequent calls only add the per-run
    file handler if one was not attached yet.

    Parameters
    ----------
    run_dir : str, optional
        Directory for the per-run log. If provided, creates
        ``{run_dir}/fit.jsonl`` with JSON Lines at file_level.
    console_level : int, optional
        Console handler level. Default: LOG_LEVEL env var or INFO.
    file_level : int
        File handler level. Default: DEBUG.
    log_dir : str, optional
        Directory for the rotating ``bsam.log``. Default: BSAM_LOG_DIR env
        var; no rotating file is written when neither is set.
    """
    global _configured, _run_dir_handler

    if console_level is None:
        env_level = os.environ.get("LOG_LEVEL", "INFO").upper()
        console_level = getattr(logging, env_level, logging.INFO)

    logger = logging.getLogger("bsam")

    if not _configured:
        logger.setLevel(logging.DEBUG)
        logger.addFilter(RunIdFilter())

        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(ConsoleFormatter())
        logger.addHandler(console)

        log_dir = log_dir or os.environ.get("BSAM_LOG_DIR")
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            rotating = RotatingFileHandler(
                os.path.join(log_dir, "bsam.log"),
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=3,
            )
            rotating.setLevel(file_level)
            rotating.setFormatter(JsonFormatter())
            logger.addHandler(rotating)

        _configured = True

    if run_dir and _run_dir_handler is None:
        os.makedirs(run_dir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(run_dir, "fit.jsonl"))
        fh.setLevel(file_level)
        fh.setFormatter(JsonFormatter())
        logger.addHandler(fh)
        _run_dir_handler = fh


def reset_logging():
    """Reset all logging state, primarily for test isolation."""
    global _configured, _run_dir_handler, _run_id

    logger = logging.getLogger("bsam")
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    for f in logger.filters[:]:
        logger.removeFilter(f)

    _configured = False
    _run_dir_handler = None
    _run_id = None


def get_pipeline_logger(name, run_dir=None):
    """Get a logger for a bsam module.

    If logging has not been set up yet, initialises with defaults.

    Parameters
    ----------
    name : str
        Logger name (typically ``__name__``).
    run_dir : str, optional
        Passed to setup_logging() if not yet configured.

    Returns
    -------
    logging.Logger
    """
    if not _configured:
        setup_logging(run_dir=run_dir)
    return logging.getLogger(name)


def log_step_summary(
    logger,
    step_name,
    status="success",
    input_summary=None,
    output_summary=None,
    timing_seconds=None,
    warnings_list=None,
):
    """Log a structured step summary at INFO level (WARNING on error)."""
    parts = [f"[{step_name}] {status}"]
    if timing_seconds is not None:
        parts.append(f"({timing_seconds:.1f}s)")
    if output_summary:
        parts.append(f"output={output_summary}")

    extra = {"step_name": step_name}
    if input_summary:
        extra["input_summary"] = input_summary
    if output_summary:
        extra["output_summary"] = output_summary
    if timing_seconds is not None:
        extra["timing_seconds"] = timing_seconds
    if warnings_list:
        extra["warnings"] = warnings_list

    level = logging.WARNING if status == "error" else logging.INFO
    logger.log(level, " ".join(parts), extra=extra)


class StepTimer:
    """Context manager for timing a unit of work.

    Usage:
        with StepTimer() as t:
            do_work()
        print(t.elapsed)
    """

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed = time.perf_counter() - self.start
