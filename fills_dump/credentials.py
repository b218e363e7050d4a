# -*- coding: utf-8 -*-
# Загрузка ключей API из JSON-файла.
from dataclasses import dataclass, field
import json

from fills_dump.errors import CredentialError


@dataclass(frozen=True)
class Credential:
    api_key: str
    api_secret: str = field(repr=False)


def load_credential(path: str) -> Credential:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise CredentialError(f"файл ключей не найден: {path}") from e
    except json.JSONDecodeError as e:
        raise CredentialError(f"файл ключей не является корректным JSON: {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"не удалось прочитать файл ключей {path}: {e}") from e

    if not isinstance(raw, dict):
        raise CredentialError(f"{path}: ожидается JSON-объект с полями api_key и api_secret")

    values = {}
    for name in ('api_key', 'api_secret'):
        v = raw.get(name)
        if v is None:
            raise CredentialError(f"{path}: отсутствует поле {name}")
        if not isinstance(v, str) or not v.strip():
            raise CredentialError(f"{path}: поле {name} должно быть непустой строкой")
        values[name] = v.strip()
    return Credential(**values)
