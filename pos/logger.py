import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from .config import Settings, settings as default_settings


def setup_logger(cfg: Optional[Settings] = None, console: bool = True) -> logging.Logger:
    """
    Configure the ``pos`` logger shared by every core module.

    - Daily rotating log file (seven days kept) under ``cfg.log_dir``
    - Console output through rich
    - Safe to call more than once: handlers are only attached the first time
    """
    cfg = cfg or default_settings

    logger = logging.getLogger("pos")
    logger.setLevel(getattr(logging, cfg.log_level, logging.INFO))

    if logger.handlers:
        return logger

    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = TimedRotatingFileHandler(
        filename=log_dir / "pos.log",
        when="midnight",
        interval=1,
        backupCount=7,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(file_handler)

    if console:
        # rich renders its own time and level columns
        console_handler = RichHandler(show_path=False, markup=False, rich_tracebacks=True)
        console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(console_handler)

    logger.info("Logger initialized (daily rotation enabled)")
    return logger
