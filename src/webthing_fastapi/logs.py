"""Logging configuration for Things.

Every `.Thing` has a ``logger`` that is a child of `.THING_LOGGER`. This
module makes sure that logger has somewhere to send its records when a
server is running, without interfering with any logging configuration the
application has set up itself.
"""

import logging

THING_LOGGER = logging.getLogger("webthing_fastapi.things")
"""The parent logger of all `.Thing` loggers."""

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class ThingLogHandler(logging.StreamHandler):
    """A stream handler used to mark the handler we added ourselves.

    Using a dedicated subclass lets `.configure_thing_logger` check whether
    it has already run, so it is safe to call more than once.
    """


def configure_thing_logger(level: int = logging.INFO) -> None:
    """Set up `.THING_LOGGER` so messages from Things are displayed.

    A single `.ThingLogHandler` is added, unless one is already present.

    :param level: the level of the thing logger.
    """
    THING_LOGGER.setLevel(level)
    if any(isinstance(h, ThingLogHandler) for h in THING_LOGGER.handlers):
        return
    handler = ThingLogHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    THING_LOGGER.addHandler(handler)
