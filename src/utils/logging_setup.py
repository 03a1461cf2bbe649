"""
Logging configuration for the folder reconciler.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict

BASE_LOGGER = "folder_reconciler"


def setup_logging(log_dir: Path, level: int = logging.INFO) -> Dict[str, logging.Logger]:
    """Initialize loggers and return a mapping of named loggers."""
    log_dir.mkdir(parents=True, exist_ok=True)
    date_stamp = datetime.utcnow().strftime("%Y%m%d")
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    master_log = log_dir / f"master_log_{date_stamp}.log"
    error_log = log_dir / f"error_log_{date_stamp}.log"
    performance_log = log_dir / f"performance_log_{date_stamp}.log"
    relocation_log = log_dir / f"relocation_log_{date_stamp}.log"

    base_logger = logging.getLogger(BASE_LOGGER)
    if not base_logger.handlers:
        base_logger.setLevel(level)
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        base_logger.addHandler(stream_handler)

        file_handler = logging.FileHandler(master_log, encoding="utf-8")
        file_handler.setFormatter(formatter)
        base_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(error_log, encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        base_logger.addHandler(error_handler)

    performance_logger = _file_logger(f"{BASE_LOGGER}.performance", performance_log, formatter)
    relocation_logger = _file_logger(f"{BASE_LOGGER}.relocation", relocation_log, formatter)

    return {"main": base_logger, "performance": performance_logger, "relocation": relocation_logger}


def _file_logger(name: str, path: Path, formatter: logging.Formatter) -> logging.Logger:
    """Create a non-propagating logger that writes to its own file."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger
