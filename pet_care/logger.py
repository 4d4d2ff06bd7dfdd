"""日志配置：按日期写文件，终端下同时输出到控制台。"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pet_care.config import LOG_DIR, LOG_LEVEL

# 全局 logger；未调用 setup_logging 时只交给根 logger 处理
logger = logging.getLogger("pet_care")


def setup_logging(log_dir: Optional[Path] = None, level: str = LOG_LEVEL) -> logging.Logger:
    """Set up logging to both file and console."""
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    if sys.stdout is not None and sys.stdout.isatty():
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(console_handler)

    return logger
