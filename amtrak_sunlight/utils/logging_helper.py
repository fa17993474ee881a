"""Logging setup shared by the command-line scripts.

Library modules only create named loggers; handlers are attached here, once,
by whichever script is the entry point.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s  %(levelname)s  %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def setup_logging(level: int | str = logging.INFO, quiet_libraries: bool = True) -> None:
    """Configure root logging for a script run.

    Args:
        level: Logging level, numeric or a name such as ``"DEBUG"``.
        quiet_libraries: Hold ``urllib3`` (used by requests) at WARNING so
            feed downloads do not flood the console.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    if quiet_libraries:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
