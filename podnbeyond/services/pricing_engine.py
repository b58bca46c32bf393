"""
Pricing Engine

Computes the itemized price of a stay from a room type's base nightly rate.

Pricing Formula (all amounts in minor currency units):
1. room_total = base_rate * nights
2. service_charge = round(room_total * 10%)
3. tax_on_room = round(room_total * 12%)
4. tax_on_service = round(service_charge * 18%)
5. total_amount = room_total + service_charge + tax_on_room + tax_on_service

Each line item is rounded half-up on its own before summing, so the
displayed line items always add up to the displayed total.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from ..exceptions import ValidationError

SERVICE_CHARGE_RATE = Decimal("0.10")
ROOM_TAX_RATE = Decimal("0.12")
SERVICE_TAX_RATE = Decimal("0.18")


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemized price of a stay"""
    nights: int
    base_rate: int
    room_total: int
    service_charge: int
    tax_on_room: int
    tax_on_service: int
    total_amount: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def round_minor_units(amount: Decimal) -> int:
    """Round half-up to a whole minor unit."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage_of(amount: int, rate: Decimal) -> int:
    return round_minor_units(Decimal(amount) * rate)


def compute_pricing(base_rate_minor_units: int, nights: int) -> PriceBreakdown:
    """
    Compute the price breakdown for a stay.

    Args:
        base_rate_minor_units: Nightly rate, >= 0
        nights: Number of nights, >= 1

    Raises:
        ValidationError: If either argument is out of range
    """
    if isinstance(nights, bool) or not isinstance(nights, int) or nights < 1:
        raise ValidationError.for_field("nights", "nights must be an integer >= 1")
    if (
        isinstance(base_rate_minor_units, bool)
        or not isinstance(base_rate_minor_units, int)
        or base_rate_minor_units < 0
    ):
        raise ValidationError.for_field("base_rate", "base rate must be an integer >= 0")

    room_total = base_rate_minor_units * nights
    service_charge = percentage_of(room_total, SERVICE_CHARGE_RATE)
    tax_on_room = percentage_of(room_total, ROOM_TAX_RATE)
    tax_on_service = percentage_of(service_charge, SERVICE_TAX_RATE)

    return PriceBreakdown(
        nights=nights,
        base_rate=base_rate_minor_units,
        room_total=room_total,
        service_charge=service_charge,
        tax_on_room=tax_on_room,
        tax_on_service=tax_on_service,
        total_amount=room_total + service_charge + tax_on_room + tax_on_service,
    )
