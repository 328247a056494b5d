"""Logging configuration for the rayweave command-line tool."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
TRACE_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

_HANDLER_NAME = "rayweave-console"

THIRD_PARTY_LOGGERS = ("PIL",)


def configure_logging(debug: bool = False, trace: bool = False) -> logging.Logger:
    """Set up console logging for the whole process.

    Levels:
        default: WARNING and above.
        debug: DEBUG and above from rayweave; third-party loggers
            (THIRD_PARTY_LOGGERS) stay at WARNING.
        trace: DEBUG and above with logger names, third-party loggers included.

    Calling this again replaces the previous console handler instead of
    adding a second one.

    Args:
        debug: Enable debug output.
        trace: Enable the most verbose output (implies debug).

    Returns:
        The root logger.
    """
    verbose = debug or trace
    level = logging.DEBUG if verbose else logging.WARNING

    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.set_name(_HANDLER_NAME)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(TRACE_LOG_FORMAT if trace else LOG_FORMAT, datefmt=DATE_FORMAT)
    )
    root.addHandler(console_handler)

    logging.getLogger("rayweave").setLevel(level)
    # Only our own modules log at DEBUG unless tracing
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if trace else logging.WARNING)

    return root
