import os
import random
from datetime import datetime, timezone

from django.conf import settings

MULTIPLIER_RANGE = (1000, 2000)


class Config:
    CACHE_DIR = "cache"

    @property
    def environment(self):
        return getattr(settings, "ENVIRONMENT", "production")

    @property
    def cache_path(self) -> str:
        """Return absolute cache directory path (writable)."""
        path = getattr(settings, "REPORT_CACHE_DIR", "")
        if not path:
            if self.environment == "production":
                path = "/tmp/cache"
            else:
                path = os.path.abspath(self.CACHE_DIR)
        os.makedirs(path, exist_ok=True)
        return path

    @property
    def countries_api(self):
        return settings.COUNTRY_DATA_API

    @property
    def exchange_api(self):
        return settings.EXCHANGE_RATE_URL

    @property
    def source_timeout(self):
        return settings.SOURCE_TIMEOUT

    @property
    def exchange_timeout(self):
        return settings.EXCHANGE_TIMEOUT

    @property
    def batch_size(self):
        return settings.INGESTION_BATCH_SIZE


config = Config()


def make_multiplier():
    """Draw a fresh GDP multiplier, uniform over MULTIPLIER_RANGE."""
    low, high = MULTIPLIER_RANGE
    return random.uniform(low, high)


def estimate_gdp(exchange_rate, population, multiplier=None):
    """
    Estimated GDP = population x exchange_rate x multiplier.

    Returns None when the exchange rate is unknown. The multiplier is random
    per call, so the result is not reproducible.
    """
    if exchange_rate is None:
        return None
    if multiplier is None:
        multiplier = make_multiplier()
    return population * exchange_rate * multiplier


def chunked(items, size):
    """Split items into consecutive lists of at most `size`, keeping order."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


def get_now():
    """Return current UTC datetime (aware)."""
    return datetime.now(timezone.utc)
