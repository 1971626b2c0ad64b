import json
from typing import Any

import pytest
import requests

from countries.models import Country

COUNTRIES_URL = "https://countries.test/all"
RATES_URL = "https://rates.test/latest/USD"


class StubResponse:
    def __init__(self, payload: Any, status: int = 200, text: str = None) -> None:
        self.status_code = status
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.text)
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class StubHttp:
    """Stands in for the `requests` module: answers or raises per URL."""

    def __init__(self, routes: dict) -> None:
        self.routes = routes
        self.calls: list = []

    def get(self, url: str, timeout: float = None) -> StubResponse:
        self.calls.append((url, timeout))
        result = self.routes[url]
        if isinstance(result, Exception):
            raise result
        return result


class StubResolver:
    def __init__(self, rates: dict) -> None:
        self.rates = rates
        self.calls: list = []

    async def resolve(self, currency_code):
        self.calls.append(currency_code)
        return self.rates.get(currency_code)


def country_payload(name, population=1000, currency="EUR", capital="Capital", region="Europe"):
    return {
        "name": name,
        "capital": capital,
        "region": region,
        "population": population,
        "currencies": [{"code": currency, "name": currency, "symbol": "$"}] if currency else [],
        "flag": f"https://flagcdn.com/{name.lower()[:2]}.svg",
    }


@pytest.fixture(autouse=True)
def cache_dir(settings, tmp_path):
    path = tmp_path / "cache"
    settings.REPORT_CACHE_DIR = str(path)
    settings.COUNTRY_DATA_API = COUNTRIES_URL
    settings.EXCHANGE_RATE_URL = RATES_URL
    return path


@pytest.fixture
def make_country(db):
    def _make(name, **fields):
        defaults = {
            "capital": "Capital",
            "region": "Europe",
            "population": 1000,
            "currency_code": "EUR",
            "exchange_rate": 1.1,
            "estimated_gdp": 1_000_000.0,
            "flag_url": "https://flagcdn.com/xx.svg",
        }
        defaults.update(fields)
        return Country.objects.create(name=name, **defaults)
    return _make
