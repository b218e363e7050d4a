# -*- coding: utf-8 -*-
# Конфигурация и загрузка параметров из .env и YAML.
from dataclasses import dataclass
from typing import Dict
from datetime import timezone, tzinfo
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
import yaml

ON_EXISTING_CHOICES = ('overwrite', 'merge')


@dataclass
class Config:
    API_URL: str = "https://ftx.com"
    TIMEOUT_SEC: float = 30.0
    RETRY_COUNT: int = 3
    RETRY_BACKOFF_SEC: float = 1.0
    RATE_LIMIT_SEC: float = 0.25
    PAGE_LIMIT: int = 5000
    TIMEZONE: str = "UTC"
    DELIMITER: str = "\t"
    ON_EXISTING: str = "overwrite"
    LOG_DIR: str = "logs"
    VERBOSE: bool = True


def parse_bool(v: str, default=False) -> bool:
    if v is None:
        return default
    return str(v).strip().lower() in ('1', 'true', 'yes', 'y', 'on')


def parse_delimiter(v: str) -> str:
    # В .env табуляцию удобнее писать как "\t" или "tab"
    if v is None:
        return "\t"
    s = str(v)
    if s.lower() == 'tab' or s == '\\t':
        return "\t"
    return s


def load_config() -> Config:
    load_dotenv()
    cfg = Config(
        API_URL=os.getenv('FILLS_API_URL', 'https://ftx.com').rstrip('/'),
        TIMEOUT_SEC=float(os.getenv('FILLS_TIMEOUT_SEC', '30')),
        RETRY_COUNT=int(os.getenv('FILLS_RETRY_COUNT', '3')),
        RETRY_BACKOFF_SEC=float(os.getenv('FILLS_RETRY_BACKOFF_SEC', '1.0')),
        RATE_LIMIT_SEC=float(os.getenv('FILLS_RATE_LIMIT_SEC', '0.25')),
        PAGE_LIMIT=int(os.getenv('FILLS_PAGE_LIMIT', '5000')),
        TIMEZONE=os.getenv('FILLS_TIMEZONE', 'UTC').strip(),
        DELIMITER=parse_delimiter(os.getenv('FILLS_DELIMITER')),
        ON_EXISTING=os.getenv('FILLS_ON_EXISTING', 'overwrite').strip().lower(),
        LOG_DIR=os.getenv('LOG_DIR', 'logs'),
        VERBOSE=parse_bool(os.getenv('VERBOSE', 'true'), True),
    )
    return cfg


def _normalize_yaml_keys(data: Dict) -> Dict:
    out: Dict = {}
    for k, v in (data or {}).items():
        if k is None:
            continue
        key = str(k).strip().replace('-', '_').upper()
        out[key] = v
    return out


def load_yaml_overrides(cfg: Config, path: str) -> Config:
    if not os.path.exists(path):
        raise FileNotFoundError(f"config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{path}: некорректный YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: ожидается YAML-словарь, получено {type(raw).__name__}")
    data = _normalize_yaml_keys(raw)

    for field in cfg.__dataclass_fields__:
        if field in data:
            value = data[field]
            if field == 'DELIMITER':
                value = parse_delimiter(value)
            elif field == 'VERBOSE':
                value = parse_bool(value, True) if not isinstance(value, bool) else value
            setattr(cfg, field, value)
    return cfg


def resolve_timezone(name: str) -> tzinfo:
    if str(name).strip().upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(str(name).strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValueError(f"неизвестная временная зона: {name}") from e


def validate_config(cfg: Config) -> Config:
    resolve_timezone(cfg.TIMEZONE)
    if not isinstance(cfg.DELIMITER, str) or len(cfg.DELIMITER) != 1:
        raise ValueError(f"разделитель должен быть одним символом: {cfg.DELIMITER!r}")
    if cfg.DELIMITER in ('"', '\n', '\r'):
        raise ValueError(f"недопустимый разделитель: {cfg.DELIMITER!r}")
    cfg.ON_EXISTING = str(cfg.ON_EXISTING).strip().lower()
    if cfg.ON_EXISTING not in ON_EXISTING_CHOICES:
        raise ValueError(f"ON_EXISTING должен быть одним из {ON_EXISTING_CHOICES}: {cfg.ON_EXISTING!r}")
    cfg.RETRY_COUNT = int(cfg.RETRY_COUNT)
    cfg.TIMEOUT_SEC = float(cfg.TIMEOUT_SEC)
    cfg.RETRY_BACKOFF_SEC = float(cfg.RETRY_BACKOFF_SEC)
    cfg.RATE_LIMIT_SEC = float(cfg.RATE_LIMIT_SEC)
    cfg.PAGE_LIMIT = int(cfg.PAGE_LIMIT)
    return cfg
