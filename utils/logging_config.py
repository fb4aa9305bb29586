# utils/logging_config.py

import logging
import sys
from typing import Optional

from utils.config import AppConfig


def setup_logging(app_config: Optional[AppConfig] = None) -> None:
    """Configure the root logger once at startup (stdout, level from LOG_LEVEL)."""
    if app_config is None:
        from utils.config import config as app_config

    logging.basicConfig(level=getattr(logging, app_config.log_level.upper(), logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
