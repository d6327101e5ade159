"""
Region -> currency mapping

Region only selects the currency code/symbol used for display; prices are
computed identically for every region.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from cockpit_store.core.config import settings
from cockpit_store.core.utils import quantize_money, to_decimal


class Region(str, Enum):
    US = "us"
    EU = "eu"


@dataclass(frozen=True)
class Currency:
    code: str
    symbol: str
    tax_included: bool = False


CURRENCIES = {
    Region.US: Currency(code="USD", symbol="$"),
    Region.EU: Currency(code="EUR", symbol="€", tax_included=True),
}


def resolve_region(value: Optional[str]) -> Region:
    """Map a raw request value to a Region, falling back to the configured default."""
    if value:
        try:
            return Region(value.strip().lower())
        except ValueError:
            pass
    return Region(settings.DEFAULT_REGION)


def currency_for(region: Region) -> Currency:
    return CURRENCIES[region]


def format_currency(
    amount: Union[Decimal, float, str, None],
    region: Region = Region.US,
    kind: str = "standard",
) -> str:
    """
    Format an amount for display.

    EU totals carry a "(Tax Included)" suffix when kind == "total".
    """
    currency = currency_for(region)
    try:
        value = quantize_money(to_decimal(amount))
    except ArithmeticError:
        value = Decimal("0.00")

    formatted = f"{currency.symbol}{value:.2f}"
    if kind == "total" and currency.tax_included:
        return f"{formatted} (Tax Included)"
    return formatted
