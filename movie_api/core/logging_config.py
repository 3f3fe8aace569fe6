"""
Logging setup for the movie API.

All output goes through loguru. The console sink is always installed; a
rotating file sink can be enabled per environment, optionally as JSON
lines for log shippers.
"""

import sys
from typing import Dict, Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

# Third-party modules that are chatty at INFO
QUIET_MODULES = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
}


def _level_filter(level: str) -> Dict[str, str]:
    levels = {"": level}
    for module, module_level in QUIET_MODULES.items():
        levels[module] = module_level
    return levels


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    enable_file_logging: bool = False,
    log_file_path: str = "movie_api.log",
    rotation: str = "10 MB",
    retention: str = "30 days",
    serialize: bool = False,
) -> None:
    """
    Replace loguru's default handler with the service sinks.

    Args:
        level: Minimum level for movie_api modules
        format_string: Console format; CONSOLE_FORMAT when None
        enable_file_logging: Also write to log_file_path
        log_file_path: File sink location
        rotation: loguru rotation policy for the file sink
        retention: loguru retention policy for the file sink
        serialize: Write the file sink as JSON lines
    """
    level = level.upper()
    logger.remove()

    logger.add(
        sys.stderr,
        format=format_string or CONSOLE_FORMAT,
        filter=_level_filter(level),
        level=0,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if enable_file_logging:
        logger.add(
            log_file_path,
            format=FILE_FORMAT,
            filter=_level_filter(level),
            level=0,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        logger.info(f"Writing logs to {log_file_path} (json={serialize})")

    logger.info(f"Log level set to {level}")


def configure_logging_from_config(config_obj) -> None:
    """Apply the ``logging`` section of a Config."""
    section = "logging"
    setup_logging(
        level=config_obj.get(f"{section}.level", default="INFO", expected_type=str),
        enable_file_logging=config_obj.get(f"{section}.enable_file", default=False, expected_type=bool),
        log_file_path=config_obj.get(f"{section}.file_path", default="movie_api.log", expected_type=str),
        rotation=config_obj.get(f"{section}.rotation", default="10 MB", expected_type=str),
        retention=config_obj.get(f"{section}.retention", default="30 days", expected_type=str),
        serialize=config_obj.get(f"{section}.json", default=False, expected_type=bool),
    )
