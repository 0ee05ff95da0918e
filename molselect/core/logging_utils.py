from __future__ import annotations

import logging

from molselect.config import load_settings


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the root logger on first use."""
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, load_settings().log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
    return logger
