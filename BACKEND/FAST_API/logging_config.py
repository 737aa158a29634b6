# Руководство к файлу (FAST_API/logging_config.py)
# Назначение:
# - Централизованная настройка логирования бэкенда DocIntel.
# - Определяет формат логов и базовые именованные логгеры `docintel.*`.
# Важно:
# - Модуль не зависит от FastAPI, его можно вызывать и из скриптов
#   (например, DATABASE/alembic.py).

from __future__ import annotations

import logging
import sys
from typing import Iterable

DOCINTEL_LOGGERS = (
    "docintel.fastapi",
    "docintel.fastapi.auth",
    "docintel.fastapi.documents",
    "docintel.fastapi.messages",
    "docintel.fastapi.system",
    "docintel.fastapi.settings",
    "docintel.fastapi.microsoft",
    "docintel.storage",
    "docintel.services",
)


def _configure_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: int = logging.INFO, extra_loggers: Iterable[str] | None = None) -> None:
    """Настраивает базовое логирование для DocIntel.

    Формат сообщения:
      [2025-01-01 10:00:00] [INFO] [module:function:line] message

    Повторный вызов безопасен: обработчики root-логгера очищаются
    и инициализируются заново.
    """

    formatter = logging.Formatter(
        fmt="[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_configure_handler(formatter))

    for name in (*DOCINTEL_LOGGERS, *(extra_loggers or ())):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.propagate = True  # отдаём в root, который пишет в stdout


__all__ = ["setup_logging"]
