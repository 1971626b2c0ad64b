from rest_framework import serializers
from .models import Country


class CountrySerializer(serializers.ModelSerializer):
    class Meta:
        model = Country
        fields = [
            'id', 'name', 'capital', 'region', 'population',
            'currency_code', 'exchange_rate', 'estimated_gdp',
            'flag_url', 'last_refreshed_at'
        ]

    def validate_name(self, value):
        return Country.normalize_name(value)

    def validate(self, data):
        """
        Validation rules for Country:
        - name and population are always required
        - outside a refresh (context_type='refresh'), currency_code is required too
        - exchange_rate must be positive and estimated_gdp non-negative when known
        """
        context_type = self.context.get("context_type")
        errors = {}

        if not data.get("name"):
            errors["name"] = "is required"
        if data.get("population") is None:
            errors["population"] = "is required"
        # currency_code can be null when the data comes from the external source
        if context_type != "refresh" and not data.get("currency_code"):
            errors["currency_code"] = "is required"

        rate = data.get("exchange_rate")
        if rate is not None and rate <= 0:
            errors["exchange_rate"] = "must be positive"
        gdp = data.get("estimated_gdp")
        if gdp is not None and gdp < 0:
            errors["estimated_gdp"] = "must not be negative"

        if errors:
            raise serializers.ValidationError({
                "error": "Validation failed",
                "details": errors
            })

        return data
