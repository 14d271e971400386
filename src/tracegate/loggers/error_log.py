import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tracegate.config import config
from tracegate.runtime.session import get_session_id


def setup_error_logger(level: int = logging.INFO) -> logging.Logger:
    """
    Configure a global logger for TraceGate.
    Writes WARN+ to stderr, and ERROR+ to a rotating file when logging is enabled.
    """
    logger = logging.getLogger("tracegate")
    if logger.handlers:
        return logger

    logger.setLevel(level)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logging.WARNING)
    sh.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(sh)

    if config.enable_logging:
        errors_dir = Path(config.logs_dir) / get_session_id()
        errors_dir.mkdir(parents=True, exist_ok=True)

        fh = RotatingFileHandler(
            errors_dir / "tracegate_errors.log",
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setLevel(logging.ERROR)
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(fh)

    logger.propagate = False
    return logger


def get_error_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"tracegate.{name}")
