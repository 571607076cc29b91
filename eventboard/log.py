import os
import sys
from typing import Optional

from loguru import logger

ERROR_LOG_NAME = 'errors.log'


def configure_logger(level: Optional[str] = None, log_dir: Optional[str] = None):
    level = str(level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_dir = log_dir if log_dir is not None else os.getenv("LOG_DIR", "")

    # Drop existing sinks so repeated configuration does not duplicate output
    logger.remove()

    logger.add(
        sys.stdout,
        level=level,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> - <level>{level}</level> - <level>{message}</level>",
    )

    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
        except OSError as e:
            logger.warning("Failed to create log directory {}: {}", log_dir, e)
        else:
            # Append-only error log; loguru swallows sink failures (catch=True)
            logger.add(
                os.path.join(log_dir, ERROR_LOG_NAME),
                level="ERROR",
                mode="a",
                encoding="utf-8",
                catch=True,
                format="[{time:YYYY-MM-DDTHH:mm:ss.SSSZ}] {level} - {message}",
            )

    return logger


logger = configure_logger()
