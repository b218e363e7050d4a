# -*- coding: utf-8 -*-
# Подписанные запросы к приватному REST API биржи (история исполнений).
import hashlib
import hmac
import time
from typing import List, Optional
from urllib.parse import quote, urlencode

import requests

from fills_dump.config import Config
from fills_dump.credentials import Credential
from fills_dump.errors import AuthError, DecodeError, TransportError
from fills_dump.logging_utils import log

FILLS_PATH = "/api/fills"

_AUTH_MARKERS = ('not logged in', 'invalid api key', 'invalid signature', 'not authorized')


def sign_request(secret: str, ts_ms: int, method: str, path_with_query: str) -> str:
    payload = f"{ts_ms}{method.upper()}{path_with_query}"
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


class _RetryableError(Exception):
    pass


class FillsClient:
    """Клиент эндпоинта истории исполнений.

    Один экземпляр на запуск; запросы идут строго последовательно, между двумя
    запросами выдерживается пауза RATE_LIMIT_SEC.
    """

    def __init__(self, credential: Credential, sub_account: Optional[str] = None,
                 cfg: Optional[Config] = None, session: Optional[requests.Session] = None):
        self.cfg = cfg or Config()
        self.credential = credential
        self.sub_account = sub_account or None
        self.session = session or requests.Session()
        self._last_request_ts: Optional[float] = None

    def _headers(self, path_with_query: str, method: str = 'GET') -> dict:
        ts = int(time.time() * 1000)
        headers = {
            'FTX-KEY': self.credential.api_key,
            'FTX-TS': str(ts),
            'FTX-SIGN': sign_request(self.credential.api_secret, ts, method, path_with_query),
        }
        if self.sub_account:
            headers['FTX-SUBACCOUNT'] = quote(self.sub_account)
        return headers

    def _throttle(self):
        pause = float(self.cfg.RATE_LIMIT_SEC or 0.0)
        if self._last_request_ts is not None and pause > 0:
            wait = self._last_request_ts + pause - time.monotonic()
            if wait > 0:
                time.sleep(wait)
        self._last_request_ts = time.monotonic()

    def _call_with_retries(self, name: str, fn, *args, **kwargs):
        retry_count = max(1, int(getattr(self.cfg, "RETRY_COUNT", 3) or 1))
        base_backoff = float(getattr(self.cfg, "RETRY_BACKOFF_SEC", 1.0) or 0.0)
        transient = (requests.ConnectionError, requests.Timeout, _RetryableError)
        for attempt in range(1, retry_count + 1):
            try:
                return fn(*args, **kwargs)
            except transient as e:
                if attempt >= retry_count:
                    raise TransportError(f"{name}: {e}") from e
                sleep_s = max(0.0, base_backoff * attempt)
                log(f"{name}: временная ошибка ({e}), попытка {attempt}/{retry_count}, повтор через {sleep_s:.1f}с", True)
                if sleep_s > 0:
                    time.sleep(sleep_s)
            except requests.RequestException as e:
                raise TransportError(f"{name}: {e}") from e
        raise TransportError(f"{name}: неизвестная ошибка")

    def _get(self, path: str, params: dict) -> list:
        query = urlencode(params)
        path_with_query = f"{path}?{query}" if query else path
        url = self.cfg.API_URL.rstrip('/') + path_with_query
        self._throttle()
        resp = self.session.get(url, headers=self._headers(path_with_query), timeout=self.cfg.TIMEOUT_SEC)
        return self._parse_response(resp)

    def _parse_response(self, resp) -> list:
        status = resp.status_code
        if status in (401, 403):
            raise AuthError(f"биржа отклонила ключ или подпись (HTTP {status}): {resp.text[:300]}")
        if status == 429 or status >= 500:
            raise _RetryableError(f"HTTP {status}: {resp.text[:300]}")

        try:
            body = resp.json()
        except ValueError as e:
            raise DecodeError(f"ответ не является JSON (HTTP {status}): {resp.text[:300]}") from e
        if not isinstance(body, dict):
            raise DecodeError(f"неожиданный формат ответа: {str(body)[:300]}")

        if body.get('success') is False or status >= 400:
            err = str(body.get('error') or f"HTTP {status}")
            if any(m in err.lower() for m in _AUTH_MARKERS):
                raise AuthError(f"биржа отклонила запрос: {err}")
            raise TransportError(f"биржа вернула ошибку: {err}")

        result = body.get('result')
        if not isinstance(result, list):
            raise DecodeError(f"в ответе нет списка result: {str(body)[:300]}")
        for item in result:
            if not isinstance(item, dict):
                raise DecodeError(f"элемент result не является объектом: {item!r}")
        return result

    def fetch_fills(self, start_time: Optional[int], end_time: int) -> List[dict]:
        params = {}
        if start_time is not None:
            params['start_time'] = int(start_time)
        params['end_time'] = int(end_time)
        return self._call_with_retries(
            f"fetch_fills(start_time={start_time},end_time={end_time})",
            self._get,
            FILLS_PATH,
            params,
        )
