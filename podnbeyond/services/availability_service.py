"""
Availability Calculator

Answers "which room types can host N guests for these nights, how many
rooms are left, and what does the stay cost".

A stay from check_in to check_out occupies the nights check_in ..
check_out - 1. A room type is offered only when every one of those dates
has an Inventory row with rooms left; a missing row counts as zero
availability, so admins must pre-populate inventory for sellable dates.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import ValidationError
from ..models.inventory import Inventory
from ..models.room import RoomType
from .pricing_engine import PriceBreakdown, compute_pricing


@dataclass
class AvailableRoom:
    room_type_id: str
    name: str
    capacity: int
    available: int
    pricing: PriceBreakdown
    amenities: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)


def stay_dates(check_in: date, check_out: date) -> List[date]:
    """Every night of a stay: check_in inclusive, check_out exclusive."""
    nights = []
    current = check_in
    while current < check_out:
        nights.append(current)
        current += timedelta(days=1)
    return nights


def validate_stay(check_in: date, check_out: date, guests: Optional[int] = None):
    if check_in is None:
        raise ValidationError.for_field("check_in", "check-in date is required")
    if check_out is None:
        raise ValidationError.for_field("check_out", "checkout date is required")
    if check_out <= check_in:
        raise ValidationError.for_field("check_out", "checkout date must be after check-in date")
    if guests is not None and guests < 1:
        raise ValidationError.for_field("guests", "at least one guest is required")


def min_remaining(rows_by_date: Dict[date, Inventory], nights: List[date]) -> int:
    """
    Rooms left across the whole stay.

    Returns 0 as soon as a night has no inventory row.
    """
    remaining = None
    for night in nights:
        row = rows_by_date.get(night)
        if row is None:
            return 0
        remaining = row.remaining if remaining is None else min(remaining, row.remaining)
    return remaining or 0


class AvailabilityCalculator:
    """Read-only availability queries over Inventory."""

    def __init__(self, db: Session):
        self.db = db

    def _load_inventory(
        self,
        room_type_ids: List[str],
        check_in: date,
        check_out: date
    ) -> Dict[str, Dict[date, Inventory]]:
        rows = self.db.query(Inventory).filter(
            Inventory.room_type_id.in_(room_type_ids),
            Inventory.date >= check_in,
            Inventory.date < check_out
        ).all()

        by_room_type: Dict[str, Dict[date, Inventory]] = defaultdict(dict)
        for row in rows:
            by_room_type[row.room_type_id][row.date] = row
        return by_room_type

    def find_available(
        self,
        room_types: Iterable[RoomType],
        check_in: date,
        check_out: date,
        guests: int
    ) -> List[AvailableRoom]:
        """
        Filter candidate room types down to the ones bookable for the stay.

        Results keep the order of the candidates.
        """
        validate_stay(check_in, check_out, guests)

        candidates = [rt for rt in room_types if (rt.capacity or 0) >= guests]
        if not candidates:
            return []

        nights = stay_dates(check_in, check_out)
        inventory = self._load_inventory([rt.id for rt in candidates], check_in, check_out)

        results = []
        for room_type in candidates:
            available = min_remaining(inventory.get(room_type.id, {}), nights)
            if available <= 0:
                continue

            results.append(AvailableRoom(
                room_type_id=room_type.id,
                name=room_type.name,
                capacity=room_type.capacity,
                available=available,
                pricing=compute_pricing(room_type.base_rate, len(nights)),
                amenities=list(room_type.amenities or []),
                images=list(room_type.images or []),
            ))

        return results

    def search(
        self,
        check_in: date,
        check_out: date,
        guests: int,
        room_type_id: Optional[str] = None
    ) -> List[AvailableRoom]:
        """Availability across active room types, ordered by name."""
        validate_stay(check_in, check_out, guests)

        query = self.db.query(RoomType).filter(RoomType.is_active == True)  # noqa: E712
        if room_type_id:
            query = query.filter(RoomType.id == room_type_id)

        return self.find_available(query.order_by(RoomType.name).all(), check_in, check_out, guests)

    def remaining_for_dates(
        self,
        room_type_id: str,
        start: date,
        end: date
    ) -> Dict[date, int]:
        """Rooms left per date in [start, end]; dates without a row are omitted."""
        rows = self.db.query(Inventory).filter(
            Inventory.room_type_id == room_type_id,
            Inventory.date >= start,
            Inventory.date <= end
        ).order_by(Inventory.date).all()
        return {row.date: max(row.remaining, 0) for row in rows}
