import logging
from typing import Optional

from tracegate.config import config
from tracegate.loggers.error_log import setup_error_logger
from tracegate.runtime.settings import HarnessSettings, read_tracegate_env


def apply_settings(settings: HarnessSettings) -> logging.Logger:
    """
    Push process-wide settings into the global config and install the
    TraceGate logger. Safe to call more than once.
    """
    config.enable_logging = settings.enable_logging
    config.logs_dir = settings.logs_dir
    if settings.session_id:
        config.session_id = settings.session_id
    return setup_error_logger()


def load_settings(settings: Optional[HarnessSettings] = None) -> HarnessSettings:
    if settings is None:
        settings = read_tracegate_env()
    logger = apply_settings(settings)
    logger.debug(
        f"[TraceGate] settings loaded: warmup={settings.warmup_iterations} "
        f"iterations={settings.iterations} logs_dir={settings.logs_dir}"
    )
    return settings
