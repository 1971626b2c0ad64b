import time

import pytest
import requests
from asgiref.sync import async_to_sync

from countries.clients import CountrySourceClient, ExchangeRateResolver, IncomingCountry
from countries.exceptions import SourceError, SourceUnavailable

from .conftest import COUNTRIES_URL, RATES_URL, StubHttp, StubResponse, country_payload


def fetch(routes):
    client = CountrySourceClient(http=StubHttp(routes))
    return async_to_sync(client.fetch_all)()


def resolve(routes, code):
    http = StubHttp(routes)
    rate = async_to_sync(ExchangeRateResolver(http=http).resolve)(code)
    return rate, http


class SlowHttp:
    """Answers only after `delay` seconds, like a source trickling its body."""

    def __init__(self, payload, delay):
        self.payload = payload
        self.delay = delay

    def get(self, url, timeout=None):
        time.sleep(self.delay)
        return StubResponse(self.payload)


class TestCountrySourceClient:
    def test_returns_payload_list(self):
        data = [country_payload("Aland"), country_payload("Nigeria", currency="NGN")]
        assert fetch({COUNTRIES_URL: StubResponse(data)}) == data

    def test_uses_ten_second_timeout(self):
        http = StubHttp({COUNTRIES_URL: StubResponse([])})
        async_to_sync(CountrySourceClient(http=http).fetch_all)()
        assert http.calls == [(COUNTRIES_URL, 10)]

    def test_timeout_is_source_unavailable(self):
        with pytest.raises(SourceUnavailable):
            fetch({COUNTRIES_URL: requests.Timeout("read timed out")})

    def test_slow_source_is_cut_off_at_timeout(self):
        client = CountrySourceClient(http=SlowHttp([], delay=0.5), timeout=0.05)
        with pytest.raises(SourceUnavailable):
            async_to_sync(client.fetch_all)()

    def test_http_500_is_source_error_with_status(self):
        with pytest.raises(SourceError) as exc_info:
            fetch({COUNTRIES_URL: StubResponse({"message": "boom"}, status=500)})
        assert exc_info.value.upstream_status == 500

    def test_connection_refused_is_source_error(self):
        with pytest.raises(SourceError) as exc_info:
            fetch({COUNTRIES_URL: requests.ConnectionError("refused")})
        assert exc_info.value.upstream_status is None

    def test_undecodable_body_is_source_error(self):
        with pytest.raises(SourceError):
            fetch({COUNTRIES_URL: StubResponse(None, text="<html>oops</html>")})

    def test_non_list_payload_is_source_error(self):
        with pytest.raises(SourceError) as exc_info:
            fetch({COUNTRIES_URL: StubResponse({"countries": []})})
        assert "expected array, got dict" in str(exc_info.value.detail)


class TestExchangeRateResolver:
    rates = {"result": "success", "base_code": "USD", "rates": {"EUR": 1.1, "NGN": 1600.5, "BAD": 0}}

    def test_resolves_known_code(self):
        rate, http = resolve({RATES_URL: StubResponse(self.rates)}, "EUR")
        assert rate == 1.1
        assert http.calls == [(RATES_URL, 5)]

    def test_unknown_code_is_none(self):
        rate, _ = resolve({RATES_URL: StubResponse(self.rates)}, "XYZ")
        assert rate is None

    def test_non_positive_rate_is_none(self):
        rate, _ = resolve({RATES_URL: StubResponse(self.rates)}, "BAD")
        assert rate is None

    def test_timeout_is_none(self):
        rate, _ = resolve({RATES_URL: requests.Timeout("slow")}, "EUR")
        assert rate is None

    def test_slow_rate_source_is_none(self):
        resolver = ExchangeRateResolver(http=SlowHttp(self.rates, delay=0.5), timeout=0.05)
        assert async_to_sync(resolver.resolve)("EUR") is None

    def test_http_error_is_none(self):
        rate, _ = resolve({RATES_URL: StubResponse({}, status=503)}, "EUR")
        assert rate is None

    def test_missing_code_skips_request(self):
        rate, http = resolve({}, None)
        assert rate is None
        assert http.calls == []


class TestIncomingCountry:
    def test_from_payload_takes_first_currency(self):
        item = country_payload("Zimbabwe", currency="USD")
        item["currencies"].append({"code": "ZWL"})
        country = IncomingCountry.from_payload(item)
        assert country.currency_code == "USD"
        assert country.currencies == ["USD", "ZWL"]

    def test_from_payload_without_currencies(self):
        country = IncomingCountry.from_payload(country_payload("Antarctica", currency=None))
        assert country.currency_code is None

    def test_from_payload_requires_name(self):
        with pytest.raises(ValueError):
            IncomingCountry.from_payload({"population": 5})
