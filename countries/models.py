from django.db import models


class Country(models.Model):
    # id — auto-generated
    # name — stored lower-cased; every lookup normalises before comparing
    name = models.CharField(max_length=200, unique=True)
    capital = models.CharField(max_length=200, null=True, blank=True)
    region = models.CharField(max_length=100, null=True, blank=True)
    population = models.PositiveBigIntegerField(default=0)
    # currency_code — null when the source lists no currency
    currency_code = models.CharField(max_length=10, null=True, blank=True)
    # exchange_rate — against USD; null when the rate could not be resolved
    exchange_rate = models.FloatField(null=True, blank=True)
    # estimated_gdp — written only by the estimation step; null without a rate
    estimated_gdp = models.FloatField(null=True, blank=True)
    flag_url = models.URLField(max_length=500, null=True, blank=True)
    # last_refreshed_at — stamped whenever a refresh creates or updates the row
    last_refreshed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "countries"

    def __str__(self):
        return self.name

    @staticmethod
    def normalize_name(name):
        return (name or "").strip().lower()
