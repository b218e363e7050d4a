# -*- coding: utf-8 -*-
# Модель исполнения (fill) и её построчное представление для файлов.
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd

from fills_dump.errors import DecodeError

# Первые десять колонок задают обязательный порядок, остальные - дополнительные поля биржи.
COLUMNS: List[str] = [
    'time',
    'id',
    'market',
    'side',
    'price',
    'size',
    'fee',
    'fee_currency',
    'liquidity',
    'order_id',
    'fee_rate',
    'trade_id',
    'type',
    'future',
    'base_currency',
    'quote_currency',
]

# Имена полей в ответе биржи (camelCase) для атрибутов записи.
API_FIELDS: Dict[str, str] = {
    'fee_currency': 'feeCurrency',
    'order_id': 'orderId',
    'fee_rate': 'feeRate',
    'trade_id': 'tradeId',
    'base_currency': 'baseCurrency',
    'quote_currency': 'quoteCurrency',
}

_INT_FIELDS = ('order_id', 'trade_id')
_FLOAT_FIELDS = ('price', 'size', 'fee')
_OPT_FLOAT_FIELDS = ('fee_rate',)
_OPT_STR_FIELDS = ('market', 'side', 'fee_currency', 'liquidity', 'type', 'future', 'base_currency', 'quote_currency')


def parse_time(value) -> datetime:
    """Разбирает ISO-8601 время и приводит его к UTC; время без зоны считается UTC."""
    if not isinstance(value, str) or not value.strip():
        raise DecodeError(f"некорректное время исполнения: {value!r}")
    try:
        ts = pd.Timestamp(value.strip())
    except (ValueError, TypeError) as e:
        raise DecodeError(f"некорректное время исполнения: {value!r}") from e
    if pd.isna(ts):
        raise DecodeError(f"некорректное время исполнения: {value!r}")
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    else:
        ts = ts.tz_convert('UTC')
    return ts.to_pydatetime().replace(tzinfo=timezone.utc)


def _to_int(name: str, value) -> int:
    if isinstance(value, bool):
        raise DecodeError(f"поле {name}: ожидается целое число, получено {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise DecodeError(f"поле {name}: ожидается целое число, получено {value!r}")


def _to_float(name: str, value) -> float:
    if isinstance(value, bool) or value is None:
        raise DecodeError(f"поле {name}: ожидается число, получено {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"поле {name}: ожидается число, получено {value!r}") from e


def _to_opt_str(name: str, value) -> Optional[str]:
    # пустая строка и отсутствие значения в файле неразличимы, храним одно None
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise DecodeError(f"поле {name}: ожидается строка, получено {value!r}")
    return value


@dataclass(frozen=True)
class ExecutionRecord:
    id: int
    time: datetime
    market: Optional[str]
    side: Optional[str]
    price: float
    size: float
    fee: float
    fee_currency: Optional[str] = None
    liquidity: Optional[str] = None
    order_id: Optional[int] = None
    fee_rate: Optional[float] = None
    trade_id: Optional[int] = None
    type: Optional[str] = None
    future: Optional[str] = None
    base_currency: Optional[str] = None
    quote_currency: Optional[str] = None

    @classmethod
    def from_api(cls, payload: dict) -> "ExecutionRecord":
        """Строит запись из объекта fill в ответе биржи.

        Отсутствие id/time/price/size/fee или значения неверного типа дают DecodeError,
        чтобы повреждённая страница не превратилась в молча неполную историю.
        """
        if not isinstance(payload, dict):
            raise DecodeError(f"fill должен быть JSON-объектом, получено {type(payload).__name__}")
        for required in ('id', 'time', 'price', 'size', 'fee'):
            if payload.get(required) is None:
                raise DecodeError(f"fill без обязательного поля {required}: {payload!r}")

        def get(attr: str):
            return payload.get(API_FIELDS.get(attr, attr))

        kwargs = {
            'id': _to_int('id', payload['id']),
            'time': parse_time(payload['time']),
        }
        for attr in _FLOAT_FIELDS:
            kwargs[attr] = _to_float(attr, get(attr))
        for attr in _OPT_FLOAT_FIELDS:
            v = get(attr)
            kwargs[attr] = None if v is None else _to_float(attr, v)
        for attr in _INT_FIELDS:
            v = get(attr)
            kwargs[attr] = None if v is None else _to_int(attr, v)
        for attr in _OPT_STR_FIELDS:
            kwargs[attr] = _to_opt_str(attr, get(attr))
        return cls(**kwargs)

    def to_row(self) -> Dict[str, str]:
        row: Dict[str, str] = {}
        for name in COLUMNS:
            v = getattr(self, name)
            if v is None:
                row[name] = ''
            elif isinstance(v, datetime):
                row[name] = v.isoformat()
            elif isinstance(v, float):
                row[name] = repr(v)
            else:
                row[name] = str(v)
        return row

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> "ExecutionRecord":
        def cell(name: str) -> Optional[str]:
            v = row.get(name)
            if v is None or v == '':
                return None
            return str(v)

        kwargs = {}
        for f in fields(cls):
            raw = cell(f.name)
            if f.name == 'time':
                kwargs['time'] = parse_time(raw)
            elif f.name == 'id':
                kwargs['id'] = _to_int('id', raw)
            elif f.name in _FLOAT_FIELDS:
                kwargs[f.name] = _to_float(f.name, raw)
            elif f.name in _OPT_FLOAT_FIELDS:
                kwargs[f.name] = None if raw is None else _to_float(f.name, raw)
            elif f.name in _INT_FIELDS:
                kwargs[f.name] = None if raw is None else _to_int(f.name, raw)
            else:
                kwargs[f.name] = raw
        return cls(**kwargs)


def sort_key(record: ExecutionRecord):
    return (record.time, record.id)
