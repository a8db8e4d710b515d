import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "jpeg_cache"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the service logger or one of its children."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)


def setup_logger(logs_dir: Path = Path("logs")) -> logging.Logger:
    logger = get_logger()
    # setup may run once per process; repeated calls must not stack handlers
    if logger.handlers:
        return logger

    # --log-dir may not exist yet
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.DEBUG)

    file_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    # DEBUG and up, with call sites
    file_handler = logging.FileHandler(logs_dir / "jpeg_cache.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_formatter)

    # request and outcome lines only
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
