"""
Launcher logging bootstrap.

Console records go to stderr through Rich; stdout is left to the
application and to classpath output. An optional JSONL sink is enabled
with the thin.log.path setting (THIN_LOG_PATH in the environment).
"""

import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path

from rich.logging import RichHandler

from .console import err_console

_RESERVED = frozenset(
    (
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "name",
        "taskName",
    )
)


class JsonlHandler(logging.Handler):
    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            base = {
                "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "schema": {"name": "thinlaunch.log", "ver": "1.0.0"},
                "logger": record.name,
                "message": record.getMessage(),
            }
            for k, v in record.__dict__.items():
                if k not in _RESERVED:
                    base.setdefault(k, v)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(base, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


def resolve_level(debug: bool = False, trace: bool = False, quiet: bool = False) -> int:
    """Log level for the launcher's switches; quiet (classpath output) wins."""
    if quiet:
        return logging.CRITICAL + 1
    if trace:
        return logging.DEBUG
    if debug:
        return logging.INFO
    return logging.WARNING


def init_logging(level: int = logging.WARNING, path: str | Path | None = None) -> None:
    """Configure the root logger once, at the very start of a launch."""
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        if isinstance(h, (JsonlHandler, RichHandler)):
            root.removeHandler(h)
    root.addHandler(RichHandler(console=err_console, show_path=False, rich_tracebacks=True))
    if path:
        root.addHandler(JsonlHandler(path))
