"""
Logging setup for the densitymap command line tools.

Library modules only create loggers; nothing is configured on import.
"""
import logging
import sys
from typing import Optional

_config_logger = logging.getLogger(__name__)


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    stream=None,
) -> None:
    """
    Attach a console handler (stdout unless another stream is given, plus an
    optional file handler) to the package logger.
    Calling it again only updates the level.
    """
    package_logger = logging.getLogger("densitymap")
    package_logger.setLevel(level)
    if package_logger.handlers:
        for h in package_logger.handlers:
            h.setLevel(level)
        return

    formatter = logging.Formatter(format_string or "%(levelname)s %(name)s: %(message)s")

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
        except OSError as e:
            _config_logger.error("Failed to create file handler for '%s': %s", log_file, e)
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)
