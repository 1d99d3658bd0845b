"""Currency layer package for historical rate lookup and conversion."""

from .converter import CurrencyConverter, currency_add_business_days, currency_round
from .interfaces import CurrencyRateSourcePort

__all__ = ["CurrencyConverter", "CurrencyRateSourcePort", "currency_add_business_days", "currency_round"]
