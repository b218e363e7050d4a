# -*- coding: utf-8 -*-
# Логирование выгрузки: общий лог, лог записанных файлов и лог ошибок.
import logging
import os
import pathlib
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_APP = None
LOGGER_FILLS = None
LOGGER_ERRORS = None

# имя логгера, файл, уровень
_LOGGERS = (
    ('fills_dump.app', 'app.log', logging.INFO),
    ('fills_dump.fills', 'fills.log', logging.INFO),
    ('fills_dump.errors', 'errors.log', logging.ERROR),
)


def now_ts() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')


def setup_logging(base_dir: str = 'logs'):
    global LOGGER_APP, LOGGER_FILLS, LOGGER_ERRORS
    log_dir = pathlib.Path(base_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    max_bytes = int(os.getenv("LOG_MAX_BYTES", 9 * 1024 * 1024))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", 30))

    formatter = logging.Formatter('[%(asctime)s UTC] %(message)s')
    formatter.converter = time.gmtime

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)

    loggers = []
    for name, filename, level in _LOGGERS:
        h = RotatingFileHandler(
            log_dir / filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        h.setLevel(level)
        h.setFormatter(formatter)
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.handlers.clear()
        lg.propagate = False
        lg.addHandler(h)
        lg.addHandler(console)
        loggers.append(lg)
    LOGGER_APP, LOGGER_FILLS, LOGGER_ERRORS = loggers


def shutdown_logging():
    global LOGGER_APP, LOGGER_FILLS, LOGGER_ERRORS
    for lg in (LOGGER_APP, LOGGER_FILLS, LOGGER_ERRORS):
        if lg is None:
            continue
        for h in list(lg.handlers):
            h.flush()
            h.close()
        lg.handlers.clear()
    LOGGER_APP = LOGGER_FILLS = LOGGER_ERRORS = None


def _emit(logger, msg: str, prefix: str = ''):
    if logger is not None:
        logger.info(msg)
    else:
        print(f"[{now_ts()}] {prefix}{msg}")


def log(msg: str, verbose=True):
    if verbose:
        _emit(LOGGER_APP, msg)


def log_fill_file(msg: str):
    _emit(LOGGER_FILLS, msg)


def log_error(msg: str, exc: Exception = None):
    if exc is not None:
        msg = msg + f" | исключение={exc}"
    if LOGGER_ERRORS is not None:
        LOGGER_ERRORS.error(msg, exc_info=exc)
    else:
        print(f"[{now_ts()}] ОШИБКА: {msg}")


def format_page_ctx(number: int, fills: int, raw: int, oldest: Optional[datetime], end_time: int) -> str:
    """Строка прогресса страницы: сколько новых исполнений, до какого момента дошёл курсор."""
    oldest_s = oldest.strftime('%Y-%m-%dT%H:%M:%S') if oldest is not None else '-'
    end_s = datetime.fromtimestamp(end_time, tz=timezone.utc).strftime('%Y-%m-%dT%H:%M:%S')
    return f"страница {number}: новых={fills} всего={raw} [{oldest_s} .. {end_s}) end_time={end_time}"
