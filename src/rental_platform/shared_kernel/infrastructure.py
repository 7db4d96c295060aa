"""
Инфраструктура общего ядра: логирование поверх стандартного модуля logging.
"""

import json
import logging
from typing import Any, Optional, Union

from .interfaces import ILogger

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Настраивает корневой логгер пакета (один раз)."""
    package_logger = logging.getLogger("rental_platform")
    package_logger.setLevel(level)

    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


class StdLogger(ILogger):
    """Логгер, передающий контекст в виде JSON после сообщения."""

    def __init__(self, name: str = "rental_platform", logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(name)

    @staticmethod
    def _format(message: str, context: dict) -> str:
        if not context:
            return message
        return f"{message} | {json.dumps(context, default=str, ensure_ascii=False)}"

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format(message, kwargs))

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format(message, kwargs))


def get_logger(name: str) -> ILogger:
    """Возвращает логгер по имени модуля."""
    return StdLogger(name)
