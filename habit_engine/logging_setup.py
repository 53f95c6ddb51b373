import os
import sys

from loguru import logger


def setup_logging(level: str = "WARNING", log_path=None) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    if log_path:
        log_dir = os.path.dirname(str(log_path))
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        logger.add(str(log_path), rotation="10 MB", level="INFO")
