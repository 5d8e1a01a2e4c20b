import logging
import sys
import json
import traceback
from pathlib import Path
from typing import Union

from colorlog import ColoredFormatter

from appservice_deployer.core.exceptions import ConfigurationError

LOGGER_NAME = "appservice_deployer"

DEBUG_MODE = False


def setup_logger(debug_mode: bool = False) -> logging.Logger:
    """
    Configure the package logger with a colored console handler.

    Every module logs through ``logging.getLogger(__name__)``; all of them sit
    below the ``appservice_deployer`` logger configured here.

    Args:
        debug_mode: Log DEBUG messages when True, INFO and above otherwise.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if debug_mode else logging.INFO
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = ColoredFormatter(
            "%(log_color)s[%(levelname)s] %(message)s",
            log_colors={
                "DEBUG":    "cyan",
                "INFO":     "green",
                "WARNING":  "yellow",
                "ERROR":    "red",
                "CRITICAL": "red,bg_white",
            }
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger


def get_debug_mode() -> bool:
    return DEBUG_MODE


def print_stack_trace() -> None:
    """Log the current exception's stack trace, only in debug mode."""
    if get_debug_mode():
        logger.error(traceback.format_exc())


def configure_logger_from_file(config_path: Union[str, Path]) -> logging.Logger:
    """
    Re-configure the logger from the ``mode`` field of a JSON config file.

    A ``"mode": "DEBUG"`` entry switches on debug logging. A missing or
    unreadable file keeps the current settings.

    Raises:
        ConfigurationError: If the file holds valid JSON that is not an object.
    """
    global logger, DEBUG_MODE
    try:
        with open(config_path, encoding="utf-8-sig") as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to configure logger from file: {e}. Using default settings.")
        return logger

    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration file must contain a JSON object, got {type(config).__name__}",
            config_file=str(config_path)
        )
    DEBUG_MODE = str(config.get("mode", "")).upper() == "DEBUG"
    logger = setup_logger(debug_mode=DEBUG_MODE)
    if DEBUG_MODE:
        logger.debug("Debug mode is active.")
    return logger


# INFO unless reconfigured later.
logger = setup_logger(debug_mode=DEBUG_MODE)
