import logging
import logging.config
from typing import Optional

from habito.config import HabitoConfig, config as default_config

def setup_logger(cfg: Optional[HabitoConfig] = None) -> logging.Logger:
    """Apply the logging config and return the package logger"""
    cfg = cfg or default_config
    if cfg.log_to_file:
        cfg.log_dir.mkdir(exist_ok=True, parents=True)
    logging.config.dictConfig(cfg.get_logging_config())
    logger = logging.getLogger("habito")
    logger.debug(f"Logging configured: {cfg.to_dict()}")
    return logger
