from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow all todo_api logs
    - allow uvicorn's own server/access logs
    - suppress Python warnings (captured as 'py.warnings') unless ERROR+
    - other third-party libraries only at WARNING+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "todo_api" or name.startswith("todo_api."):
            return True

        if name == "uvicorn" or name.startswith("uvicorn."):
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        return record.levelno >= logging.WARNING


# PUBLIC_INTERFACE
def setup_logging(
    *,
    console_level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler: filtered, at console_level
    - File handler (only when log_file is given): full logs for debugging

    Call this ONCE, at application startup.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)
