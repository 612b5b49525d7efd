"""Logging setup for reconciliation commands: rotating file, optional console, per-logger levels."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _level(name: Any, fallback: int = logging.INFO) -> int:
    return getattr(logging, str(name).upper(), fallback)


def _file_handler(log_path: Path, cfg: dict[str, Any]) -> logging.Handler:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )


def setup_logging(settings: dict[str, Any], project_root: Path | None = None) -> None:
    """Configure the root logger from settings["logging"].

    `file` (relative to project_root) enables a rotating file handler; an empty value
    disables it. Console output is off unless `log_to_console` is set, so the calling
    command layer owns stdout. `loggers` maps logger names to levels, e.g.
    {"cloudext.extensions.thumbprint": "DEBUG"}.
    """
    cfg = settings.get("logging", {})
    level = _level(cfg.get("level", "INFO"))
    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    handlers: list[logging.Handler] = []
    log_file = cfg.get("file")
    if log_file:
        handlers.append(_file_handler((project_root or Path.cwd()) / log_file, cfg))
    if cfg.get("log_to_console", False):
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    for name, logger_level in (cfg.get("loggers") or {}).items():
        logging.getLogger(name).setLevel(_level(logger_level))
