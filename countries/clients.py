import asyncio
import logging
from dataclasses import dataclass, field

import requests
from asgiref.sync import sync_to_async
from requests.exceptions import RequestException, Timeout

from .exceptions import SourceError, SourceUnavailable
from .utils import config

logger = logging.getLogger(__name__)


@dataclass
class IncomingCountry:
    """One country as delivered by the external source."""
    name: str
    capital: str = None
    region: str = None
    population: int = 0
    currencies: list = field(default_factory=list)
    flag: str = None

    @classmethod
    def from_payload(cls, item):
        if not isinstance(item, dict):
            raise ValueError(f"expected an object, got {type(item).__name__}")
        name = item.get("name")
        if not name or not isinstance(name, str):
            raise ValueError("country has no name")
        codes = [
            c.get("code") for c in (item.get("currencies") or [])
            if isinstance(c, dict) and c.get("code")
        ]
        return cls(
            name=name,
            capital=item.get("capital"),
            region=item.get("region"),
            population=int(item.get("population") or 0),
            currencies=codes,
            flag=item.get("flag"),
        )

    @property
    def currency_code(self):
        return self.currencies[0] if self.currencies else None


async def _get(http, url, timeout):
    # requests is blocking; run it off the event loop so calls overlap.
    # Its timeout only bounds each socket read, wait_for bounds the whole call.
    call = sync_to_async(http.get, thread_sensitive=False)(url, timeout=timeout)
    return await asyncio.wait_for(call, timeout)


class CountrySourceClient:
    """Fetches the full country dataset from the external source."""

    def __init__(self, url=None, timeout=None, http=requests):
        self.url = url or config.countries_api
        self.timeout = timeout if timeout is not None else config.source_timeout
        self.http = http

    async def fetch_all(self):
        try:
            resp = await _get(self.http, self.url, self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (Timeout, asyncio.TimeoutError) as e:
            logger.error("Country source timed out after %ss: %s", self.timeout, self.url)
            raise SourceUnavailable(f"Could not fetch data from {self.url}") from e
        except RequestException as e:
            upstream = getattr(e.response, "status_code", None)
            logger.error("Country source request failed (%s): %s", upstream, e)
            raise SourceError(
                f"Could not fetch data from {self.url}", upstream_status=upstream
            ) from e
        except ValueError as e:
            # body was not JSON
            logger.error("Country source returned an undecodable body: %s", e)
            raise SourceError("Country source returned malformed JSON") from e

        if not isinstance(data, list):
            raise SourceError(
                f"Invalid API response: expected array, got {type(data).__name__}"
            )
        logger.info("Fetched %d countries from %s", len(data), self.url)
        return data


class ExchangeRateResolver:
    """
    Resolves a currency code to its rate against USD.

    Best effort: any failure yields None instead of an exception. Each call
    makes its own request, so concurrent resolves share no state.
    """

    def __init__(self, url=None, timeout=None, http=requests):
        self.url = url or config.exchange_api
        self.timeout = timeout if timeout is not None else config.exchange_timeout
        self.http = http

    async def resolve(self, currency_code):
        if not currency_code:
            return None
        try:
            resp = await _get(self.http, self.url, self.timeout)
            resp.raise_for_status()
            rates = resp.json().get("rates") or {}
            rate = rates.get(currency_code)
            rate = float(rate) if rate is not None else None
        except Exception as e:
            logger.warning("Exchange rate fetch failed for %s: %s", currency_code, e)
            return None

        if rate is None or rate <= 0:
            logger.warning("No usable exchange rate for %s", currency_code)
            return None
        logger.debug("Exchange rate for %s: %s", currency_code, rate)
        return rate
