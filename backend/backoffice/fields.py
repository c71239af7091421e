from django.db import models
from rest_framework import serializers

from .decimals import decimal_str


class ExactDecimalField(serializers.DecimalField):
    """Quantities and prices always leave the API as exact decimal strings."""

    def __init__(self, max_digits=None, decimal_places=None, **kwargs):
        super().__init__(max_digits, decimal_places, **kwargs)

    def to_representation(self, value):
        if value is None:
            return None
        return decimal_str(value)


class DecimalModelSerializer(serializers.ModelSerializer):
    serializer_field_mapping = {
        **serializers.ModelSerializer.serializer_field_mapping,
        models.DecimalField: ExactDecimalField,
    }
