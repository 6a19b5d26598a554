import logging
import os
from pprint import pformat
from typing import Any

from pydantic import BaseModel

ROOT_LOGGER_NAME = "termgrid"
LOG_LEVEL_ENV = "TERMGRID_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"


class PprintLogger:
    """A logger wrapper that pretty-prints models and containers.

    Strings pass through untouched so ``%``-style arguments still work.
    Pydantic models (documents, columns, suggestions, reports) are rendered
    with ``model_dump_json(indent=2)``; other objects go through ``pformat``.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _format_message(self, msg: Any, pprint: bool = True) -> str:
        if isinstance(msg, str) or not pprint:
            return str(msg)
        if isinstance(msg, BaseModel):
            return msg.model_dump_json(indent=2)
        return pformat(msg, width=120, depth=None)

    def debug(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.debug(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def info(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.info(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def warning(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.warning(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def error(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.error(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def exception(self, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        self._logger.exception(self._format_message(msg, pprint=pprint), *args, stacklevel=2, **kwargs)

    def __getattr__(self, name: str) -> Any:
        """Delegate everything else (setLevel, handlers, ...) to the wrapped logger."""
        return getattr(self._logger, name)


def get_logger(name: str) -> PprintLogger:
    """Return a PprintLogger for a module; handlers are left to the application."""
    return PprintLogger(logging.getLogger(name))


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        return resolved
    return level


def setup_logging(level: int | str | None = None) -> PprintLogger:
    """Attach a stream handler to the ``termgrid`` logger and return it.

    The level defaults to ``$TERMGRID_LOG_LEVEL`` (or INFO). Calling this
    twice does not add a second handler.
    """
    resolved = _resolve_level(level)
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(resolved)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(resolved)
    return PprintLogger(logger)
