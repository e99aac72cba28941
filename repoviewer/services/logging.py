# repoviewer/services/logging.py
import sys
from loguru import logger

from ..config.paths import get_user_log_dir

# Plain messages on the console so `repoviewer tree` output stays readable;
# source locations only when debugging
CONSOLE_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"
CONSOLE_FORMAT_VERBOSE = "<level>{level: <8}</level> | <cyan>{name}:{function}:{line}</cyan> - <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {process} | {name}:{function}:{line} - {message}"


def setup_logging(level="INFO", verbose=False, log_to_file=True):
    """Configures loguru: a stderr sink for the user and a rotating debug log file."""
    log_level = "DEBUG" if verbose else level
    logger.remove()

    logger.add(
        sys.stderr,
        level=log_level,
        format=CONSOLE_FORMAT_VERBOSE if verbose else CONSOLE_FORMAT,
        colorize=True,
        enqueue=True
    )

    if not log_to_file:
        return
    try:
        log_file_str = str(get_user_log_dir() / "repoviewer_{time:YYYY-MM-DD}.log")
        logger.add(
            log_file_str,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation="1 day",
            retention="7 days",
            compression="zip",
            enqueue=True,
            encoding="utf-8"
        )
        logger.debug(f"Logging initialized. Level: {log_level}. Log file: {log_file_str}")
    except Exception as e:
        # Read-only home directories and the like; the console sink still works
        logger.warning(f"File logging disabled, could not configure it: {e}")
