from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import structlog

from .config.settings import ConformSettings
from .protocol.classifier import Outcome

PROTOCOL_LOGGER_NAME = "alpaca_conform.protocol"
MEMBER_WIDTH = 30
OUTCOME_WIDTH = 6

_CONSOLE_HANDLER_FLAG = "_alpaca_conform_console_handler"
_FILE_HANDLER_FLAG = "_alpaca_conform_file_handler"

_LEVELS = {
    Outcome.OK: logging.INFO,
    Outcome.INFO: logging.INFO,
    Outcome.ISSUE: logging.WARNING,
    Outcome.ERROR: logging.ERROR,
    Outcome.DEBUG: logging.DEBUG,
}

logger = structlog.get_logger(__name__)


class ConformLogger:
    """Writes column formatted protocol check lines to a stdlib logger."""

    def __init__(self, target: Optional[logging.Logger] = None) -> None:
        self._logger = target or logging.getLogger(PROTOCOL_LOGGER_NAME)
        self.status = ""

    def log_message(self, member: str, outcome: Outcome, message: str, context: Optional[str] = None) -> None:
        level = _LEVELS[outcome]
        self._logger.log(level, "%s%s %s", f"{member:<{MEMBER_WIDTH}}", f"{outcome.value:<{OUTCOME_WIDTH}}", message)
        if context is not None:
            self._logger.log(level, "%s%s   Response: %s", " " * MEMBER_WIDTH, " " * OUTCOME_WIDTH, context)

    def log_line(self, text: str = "") -> None:
        self._logger.info("%s", text)

    def set_status(self, text: str) -> None:
        self.status = text
        if text:
            logger.debug("conform.status", status=text)


def configure_logging(settings: ConformSettings) -> None:
    level = logging.DEBUG if settings.debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.DEBUG if settings.debug else logging.WARNING)

    if not any(getattr(handler, _CONSOLE_HANDLER_FLAG, False) for handler in root_logger.handlers):
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter("%(message)s"))
        setattr(console, _CONSOLE_HANDLER_FLAG, True)
        root_logger.addHandler(console)

    if settings.log_file is not None:
        _configure_file_logging(root_logger, settings)

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def _configure_file_logging(root_logger: logging.Logger, settings: ConformSettings) -> None:
    for handler in root_logger.handlers:
        if getattr(handler, _FILE_HANDLER_FLAG, False):
            return

    log_path = settings.log_file
    assert log_path is not None
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_path,
        maxBytes=5_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    setattr(handler, _FILE_HANDLER_FLAG, True)
    root_logger.addHandler(handler)
    logging.getLogger(__name__).info("conform.logfile_enabled path=%s", log_path)
