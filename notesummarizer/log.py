"""Logging setup for the note summarizer.

Call ``setup_logging`` once when the extension initializes to configure the
``"notesummarizer"`` package logger.  All other modules obtain a child logger
via ``logging.getLogger(__name__)`` and let records propagate here.

When the host passes its log sink, records are forwarded to it as
``info``/``warn``/``error`` entries tagged with the extension id.
"""

import logging
import sys
from typing import Any

_FMT = "%(asctime)s  %(levelname)-7s [%(threadName)s] %(message)s"
_DATE = "%H:%M:%S"

LOGGER_NAME = "notesummarizer"


class HostLogHandler(logging.Handler):
    """Forward log records to a host log sink.

    The sink exposes ``info``, ``warn`` and ``error`` methods taking
    ``(message, source)``.  DEBUG records go to ``info``; CRITICAL to ``error``.
    """

    def __init__(self, sink: Any, source: str, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.sink = sink
        self.source = source

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR:
                self.sink.error(message, self.source)
            elif record.levelno >= logging.WARNING:
                self.sink.warn(message, self.source)
            else:
                self.sink.info(message, self.source)
        except Exception:
            self.handleError(record)


def setup_logging(sink: Any = None, source: str = LOGGER_NAME) -> None:
    """Configure the ``notesummarizer`` logger.

    Args:
        sink:   Optional host log sink; when given it replaces the stderr
                handler so entries show up in the host's own log.
        source: Source tag attached to every entry sent to ``sink``.

    Calling this function a second time is safe: existing handlers are
    cleared before new ones are added.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if sink is not None:
        host = HostLogHandler(sink, source, level=logging.DEBUG)
        host.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(host)
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(_FMT, datefmt=_DATE))
        logger.addHandler(console)

