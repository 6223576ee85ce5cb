import logging
import os
import sys
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

from vpn_server_setup.ui import console

LOGGER_NAME: str = "vpn_server_setup"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logger(log_file: Union[str, Path], debug: bool = False) -> logging.Logger:
    """Set up the console (Rich) and file handlers for the setup logger."""
    log_file = Path(log_file)
    logger = get_logger()
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()

    console_handler = RichHandler(console=console, rich_tracebacks=True)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.addHandler(console_handler)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: file logging disabled for {log_file}: {e}", file=sys.stderr)
        return logger

    try:
        # Secure the log file
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        logger.warning(f"Could not set permissions on log file {log_file}: {e}")

    return logger
