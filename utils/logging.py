"""Logging setup shared by the API process and the scheduler."""
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# Third-party loggers that are too chatty at INFO.
QUIET_LOGGERS = ("apscheduler.executors.default", "httpx", "pymongo")


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        return  # already configured
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    root.setLevel(level.upper())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
