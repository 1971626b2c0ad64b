import asyncio
import logging
from dataclasses import dataclass

from asgiref.sync import sync_to_async

from .clients import CountrySourceClient, ExchangeRateResolver, IncomingCountry
from .exceptions import InternalError
from .models import Country
from .report import render_and_store
from .serializers import CountrySerializer
from .utils import chunked, config, estimate_gdp, get_now

CREATED = "created"
UPDATED = "updated"
FAILED = "failed"

UPDATE_FIELDS = ["capital", "region", "population", "estimated_gdp", "last_refreshed_at"]


@dataclass(frozen=True)
class ItemOutcome:
    status: str
    name: str
    reason: str = None


def tally(outcomes):
    """Fold per-item outcomes into the run counters."""
    counts = {CREATED: 0, UPDATED: 0, FAILED: 0}
    for outcome in outcomes:
        counts[outcome.status] += 1
    counts["total"] = len(outcomes)
    return counts


class ReconciliationEngine:
    """
    Pulls the full country dataset and reconciles it with the database.

    Items are processed in sequential batches; the items of one batch run
    concurrently. Existing countries keep their currency and exchange rate
    and only get a fresh GDP estimate; new countries have their rate
    resolved first. The summary image is rendered once, after the last batch.
    """

    def __init__(self, source=None, resolver=None, batch_size=None,
                 render=render_and_store, logger=None):
        self.source = source or CountrySourceClient()
        self.resolver = resolver or ExchangeRateResolver()
        self.batch_size = batch_size if batch_size is not None else config.batch_size
        self.render = render
        self.logger = logger or logging.getLogger(__name__)

    async def run(self):
        # Step 1: fetch; failures propagate before anything is written
        data = await self.source.fetch_all()
        batches = chunked(data, self.batch_size)
        self.logger.info("Processing %d countries in %d batches", len(data), len(batches))

        # Step 2: batches in order, items within a batch concurrently
        outcomes = []
        for number, batch in enumerate(batches, start=1):
            now = get_now()
            results = await asyncio.gather(*(self.process(item, now) for item in batch))
            counts = tally(results)
            self.logger.info(
                "Batch %d/%d complete [created: %d, updated: %d, failed: %d]",
                number, len(batches), counts[CREATED], counts[UPDATED], counts[FAILED],
            )
            outcomes.extend(results)

        # Step 3: one render for the whole run
        try:
            await sync_to_async(self.render)()
        except Exception as e:
            self.logger.exception("Summary image generation failed")
            raise InternalError(f"Could not generate summary image: {e}") from e

        result = tally(outcomes)
        self.logger.info(
            "Refresh complete: created %d, updated %d, failed %d of %d",
            result[CREATED], result[UPDATED], result[FAILED], result["total"],
        )
        return result

    async def process(self, item, now):
        name = item.get("name") if isinstance(item, dict) else None
        try:
            country = IncomingCountry.from_payload(item)
            name = Country.normalize_name(country.name)
            existing = await Country.objects.filter(name=name).afirst()
            if existing is not None:
                await self.update(existing, country, now)
                self.logger.debug("Updated: %s", name)
                return ItemOutcome(UPDATED, name)
            reason = await self.create(name, country, now)
            if reason:
                self.logger.error("Failed to process %s: %s", name, reason)
                return ItemOutcome(FAILED, name, reason)
            self.logger.debug("Created: %s", name)
            return ItemOutcome(CREATED, name)
        except Exception as e:
            self.logger.error("Failed to process %s: %s", name, e)
            return ItemOutcome(FAILED, name, str(e))

    async def update(self, existing, country, now):
        # the stored rate is reused; the resolver is not called again
        existing.capital = country.capital
        existing.region = country.region
        existing.population = country.population
        existing.estimated_gdp = estimate_gdp(existing.exchange_rate, country.population)
        existing.last_refreshed_at = now
        await existing.asave(update_fields=UPDATE_FIELDS)

    async def create(self, name, country, now):
        """Create a new country; returns a failure reason or None."""
        currency_code = country.currency_code
        exchange_rate = await self.resolver.resolve(currency_code) if currency_code else None
        serializer = CountrySerializer(data={
            "name": name,
            "capital": country.capital,
            "region": country.region,
            "population": country.population,
            "currency_code": currency_code,
            "exchange_rate": exchange_rate,
            "estimated_gdp": estimate_gdp(exchange_rate, country.population),
            "flag_url": country.flag,
            "last_refreshed_at": now,
        }, context={"context_type": "refresh"})

        if not await sync_to_async(serializer.is_valid)():
            return str(serializer.errors.get("details", serializer.errors))
        await sync_to_async(serializer.save)()
        return None
