"""Process logging for the NIM proxy server.

``nim-proxy serve`` starts uvicorn with ``log_config=None`` so the server's own
loggers flow through the handlers installed here instead of uvicorn's defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

__all__ = ["configure_logging", "SERVER_LOGGERS"]

LOG_DIR_ENV = "NIM_PROXY_LOG_DIR"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# uvicorn's loggers; their own handlers are dropped so records reach the root.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# httpx logs every upstream call at INFO; only shown when debugging.
_CHATTY_LOGGERS = ("httpx", "httpcore")

_MANAGED = "_nim_proxy_handler"


def log_directory() -> Path:
    override = os.environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / "logs"


def _managed(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    setattr(handler, _MANAGED, True)
    return handler


def _route_server_loggers(level: int, access_log: bool) -> None:
    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        for handler in list(server_logger.handlers):
            server_logger.removeHandler(handler)
        server_logger.propagate = True
        server_logger.setLevel(level)
    if not access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    quiet = logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)


def configure_logging(
    log_name: str,
    *,
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    include_console: bool = True,
    access_log: bool = True,
) -> Path:
    """Send gateway and uvicorn logs to ``<log_dir>/<log_name>.log``.

    Handlers from an earlier call are replaced, so reconfiguring never
    duplicates output. ``access_log=False`` keeps per-request uvicorn access
    lines out of the log.
    """
    target = Path(log_dir).expanduser() if log_dir else log_directory()
    target.mkdir(parents=True, exist_ok=True)
    log_path = target / f"{log_name}.log"

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, _MANAGED, False):
            root.removeHandler(handler)
            handler.close()

    root.addHandler(_managed(logging.FileHandler(log_path, encoding="utf-8"), level))
    if include_console:
        root.addHandler(_managed(logging.StreamHandler(), level))

    _route_server_loggers(level, access_log)
    logging.captureWarnings(True)
    return log_path
