"""
Operations behind the HTTP endpoints.

Each function raises one of the errors in countries.exceptions; anything
unexpected is logged and surfaced as InternalError.
"""
import functools
import logging

from asgiref.sync import async_to_sync
from django.db.models import F, Max
from rest_framework.exceptions import APIException

from .exceptions import InternalError, NotFound
from .models import Country
from .reconciliation import ReconciliationEngine
from .report import ReportCache

logger = logging.getLogger(__name__)

SORT_ORDERS = {
    "gdp_asc": F("estimated_gdp").asc(nulls_last=True),
    "gdp_desc": F("estimated_gdp").desc(nulls_last=True),
}


def internal_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except APIException:
            raise
        except Exception as e:
            logger.exception("%s failed", func.__name__)
            raise InternalError(str(e)) from e
    return wrapper


@internal_errors
def run_ingestion(engine=None):
    """Fetch, reconcile and re-render. Source errors propagate unchanged."""
    engine = engine or ReconciliationEngine()
    return async_to_sync(engine.run)()


@internal_errors
def get_report(cache=None):
    return (cache or ReportCache()).load()


@internal_errors
def get_country(name):
    try:
        return Country.objects.get(name=Country.normalize_name(name))
    except Country.DoesNotExist:
        raise NotFound("Country not found")


@internal_errors
def list_countries(region=None, currency=None, sort=None):
    qs = Country.objects.all()
    if region:
        qs = qs.filter(region__iexact=region.strip())
    if currency:
        qs = qs.filter(currency_code=currency.strip().upper())
    if sort:
        qs = qs.order_by(SORT_ORDERS[sort], "id")
    else:
        qs = qs.order_by("id")

    countries = list(qs)
    if not countries:
        raise NotFound("Country not found")
    return countries


@internal_errors
def delete_country(name):
    deleted, _ = Country.objects.filter(name=Country.normalize_name(name)).delete()
    if not deleted:
        raise NotFound("Country not found")


@internal_errors
def get_status():
    stats = Country.objects.aggregate(last=Max("last_refreshed_at"))
    return {
        "total_countries": Country.objects.count(),
        "last_refreshed_at": stats["last"],
    }
