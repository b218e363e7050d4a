import json

import pytest

from fills_dump import logging_utils


def make_fill(fid, time, market="BTC-PERP", side="buy", price=100.0, size=0.5, fee=0.01, **extra):
    fill = {
        "id": fid,
        "time": time,
        "market": market,
        "side": side,
        "price": price,
        "size": size,
        "fee": fee,
        "feeCurrency": "USD",
        "feeRate": 0.0007,
        "liquidity": "taker",
        "orderId": 1000 + fid,
        "tradeId": 5000 + fid,
        "type": "order",
        "future": market,
        "baseCurrency": None,
        "quoteCurrency": None,
    }
    fill.update(extra)
    return fill


class FakeClient:
    """Отдаёт заранее заданные страницы по одной на вызов и запоминает запросы."""

    def __init__(self, pages, error_at=None, error=None):
        self.pages = list(pages)
        self.calls = []
        self.error_at = error_at
        self.error = error

    def fetch_fills(self, start_time, end_time):
        self.calls.append((start_time, end_time))
        if self.error_at is not None and len(self.calls) == self.error_at:
            raise self.error
        if not self.pages:
            return []
        return self.pages.pop(0)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging_utils.shutdown_logging()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("FILLS_API_URL", "FILLS_TIMEZONE", "FILLS_DELIMITER", "FILLS_ON_EXISTING", "LOG_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def credential_file(tmp_path):
    path = tmp_path / "cred.json"
    path.write_text(json.dumps({"api_key": "key-1", "api_secret": "secret-1"}), encoding="utf-8")
    return path
