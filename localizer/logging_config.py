import logging
import os
import sys
from logging import Handler
from typing import Optional

from tqdm import tqdm

LOGGER_NAME = "localizer"

# Extra levels on either side of DEBUG/INFO, selected by --trace and --verbose.
TRACE = 5
VERBOSE = 15
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")


class TqdmLoggingHandler(Handler):
    """
    Custom logging handler that uses tqdm.write to output log messages.
    This prevents log messages from interfering with the tqdm progress bar.
    """
    def __init__(self, level=logging.NOTSET):
        super().__init__(level)

    def emit(self, record):
        try:
            msg = self.format(record)
            stream = sys.stderr if record.levelno >= logging.WARNING else sys.stdout
            tqdm.write(msg, file=stream)
            self.flush()
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


def level_from_flags(verbose: bool = False, debug: bool = False, trace: bool = False) -> int:
    """Map the CLI verbosity flags onto a logging level; the most verbose flag wins."""
    if trace:
        return TRACE
    if debug:
        return logging.DEBUG
    if verbose:
        return VERBOSE
    return logging.INFO


def setup_logger(log_level, log_file_path: Optional[str] = None, log_to_console: bool = True) -> logging.Logger:
    """
    Set up the logger for the localizer.

    Configures a logger with an optional file handler and a tqdm-aware stream
    handler, so log lines do not tear the per-task progress bars.

    Args:
        log_level: The logging level, as an int or a name (e.g., 'INFO', 'TRACE').
        log_file_path: The path to the log file, or None for console only.
        log_to_console: Whether to log to the console.

    Returns:
        The configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)

    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    logger.setLevel(log_level)

    # Clear any existing handlers to prevent duplicate logging
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.propagate = False

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        logger.addHandler(file_handler)

    if log_to_console:
        tqdm_handler = TqdmLoggingHandler()
        tqdm_handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(tqdm_handler)

    return logger
