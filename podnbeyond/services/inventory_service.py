"""
Inventory Service

- consume / release: move Inventory.booked for the nights of a stay
  (called from payment confirmation, cancellation and OTA sync)
- bulk upsert and listing for the admin surface
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..exceptions import NotFound, ValidationError
from ..models.inventory import Inventory
from ..models.room import RoomType
from ..utils.db_helpers import lock_rows
from .availability_service import stay_dates

logger = logging.getLogger(__name__)


def _locked_stay_rows(db: Session, room_type_id: str, check_in: date, check_out: date) -> Dict[date, Inventory]:
    rows = lock_rows(
        db, Inventory,
        Inventory.room_type_id == room_type_id,
        Inventory.date >= check_in,
        Inventory.date < check_out,
        order_by=Inventory.date
    )
    return {row.date: row for row in rows}


def consume_inventory(db: Session, room_type_id: str, check_in: date, check_out: date) -> int:
    """
    booked += 1 for every night of the stay. Does not commit.

    Nights without an Inventory row are skipped with a warning; an
    overbooked night is logged but still counted.
    Returns the number of rows updated.
    """
    rows = _locked_stay_rows(db, room_type_id, check_in, check_out)
    updated = 0
    for night in stay_dates(check_in, check_out):
        row = rows.get(night)
        if row is None:
            logger.warning(f"No inventory row for room type {room_type_id} on {night}, nothing to consume")
            continue
        row.booked = (row.booked or 0) + 1
        if row.booked > (row.allotment or 0):
            logger.warning(
                f"Room type {room_type_id} overbooked on {night}: {row.booked}/{row.allotment}"
            )
        updated += 1
    return updated


def release_inventory(db: Session, room_type_id: str, check_in: date, check_out: date) -> int:
    """booked -= 1 (never below zero) for every night of the stay. Does not commit."""
    rows = _locked_stay_rows(db, room_type_id, check_in, check_out)
    updated = 0
    for night in stay_dates(check_in, check_out):
        row = rows.get(night)
        if row is None:
            continue
        row.booked = max((row.booked or 0) - 1, 0)
        updated += 1
    return updated


class InventoryService:
    """Admin operations over daily allotments."""

    def __init__(self, db: Session):
        self.db = db

    def list(self, room_type_id: Optional[str], start: date, end: date) -> List[Inventory]:
        if end < start:
            raise ValidationError.for_field("end", "end date must not be before start date")

        query = self.db.query(Inventory).filter(Inventory.date >= start, Inventory.date <= end)
        if room_type_id:
            query = query.filter(Inventory.room_type_id == room_type_id)
        return query.order_by(Inventory.room_type_id, Inventory.date).all()

    def bulk_upsert(self, room_type_id: str, entries: Iterable[Dict]) -> List[Inventory]:
        """
        Set the allotment for each {date, allotment} entry.

        New rows start with booked = 0; existing rows keep their booked
        count and only the allotment changes.
        """
        room_type = self.db.query(RoomType).filter(RoomType.id == room_type_id).first()
        if not room_type:
            raise NotFound(f"Room type {room_type_id} not found")

        entries = list(entries)
        for entry in entries:
            if entry["allotment"] < 0:
                raise ValidationError.for_field("allotment", "allotment must be >= 0")

        dates = [entry["date"] for entry in entries]
        existing = {
            row.date: row
            for row in lock_rows(
                self.db, Inventory,
                Inventory.room_type_id == room_type_id,
                Inventory.date.in_(dates)
            )
        } if dates else {}

        results = []
        try:
            for entry in entries:
                row = existing.get(entry["date"])
                if row is None:
                    row = Inventory(
                        room_type_id=room_type_id,
                        date=entry["date"],
                        allotment=entry["allotment"],
                        booked=0
                    )
                    self.db.add(row)
                    existing[entry["date"]] = row
                else:
                    row.allotment = entry["allotment"]
                results.append(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Upserted {len(results)} inventory rows for room type {room_type_id}")
        return results
