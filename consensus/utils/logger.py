"""Logging utilities."""

import logging
import sys
from pathlib import Path
from datetime import datetime


def _is_console(handler: logging.Handler) -> bool:
    return (isinstance(handler, logging.StreamHandler)
            and not isinstance(handler, logging.FileHandler)
            and handler.stream is sys.stdout)


def setup_logger(name: str = 'consensus', log_level: int = logging.INFO,
                 log_file: str = None) -> logging.Logger:
    """Setup logger with console and optional file handler."""
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if not any(_is_console(h) for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def create_session_log_file(log_dir: str = 'logs') -> str:
    """Create timestamped log file for session."""
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    return f"{log_dir}/consensus_{timestamp}.log"


def logger_from_config(config: dict) -> logging.Logger:
    """Setup the package logger from the `logging` config section."""
    section = config.get('logging', {})
    level = logging.getLevelName(str(section.get('level', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO
    log_file = section.get('file')
    if log_file is None and section.get('session_dir'):
        log_file = create_session_log_file(section['session_dir'])
    return setup_logger(section.get('name', 'consensus'), level, log_file)
