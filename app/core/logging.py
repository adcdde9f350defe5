import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger


def setup_logging(level: int | str = logging.INFO, log_file: Optional[str] = None) -> None:
    """Configure root and uvicorn loggers with JSON output.

    Args:
        level: Log level (int or name such as "INFO").
        log_file: Optional path for a JSON file handler.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    fmt = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(pathname)s %(lineno)d"
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(fmt)

    # Errors also go to stderr in plain text
    err_fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(err_fmt)

    file_handler: Optional[logging.Handler] = None
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(fmt)
        except OSError as exc:
            sys.stderr.write(f"Could not open log file {log_file}: {exc}\n")

    handlers: list[logging.Handler] = [stream_handler, stderr_handler]
    if file_handler:
        handlers.append(file_handler)

    root.handlers = list(handlers)

    uv_err = logging.getLogger("uvicorn.error")
    uv_err.setLevel(level)
    uv_err.handlers = list(handlers)
    uv_err.propagate = False

    uv_access = logging.getLogger("uvicorn.access")
    uv_access.setLevel(level)
    uv_access.propagate = False

    logging.getLogger("watchfiles").setLevel(logging.ERROR)
    logging.getLogger("watchfiles").propagate = False
    logging.getLogger("passlib").setLevel(logging.ERROR)
