"""
Sync Orchestrator

Drives one channel provider:
- push_availability / push_rates: derive updates from Inventory and
  RoomType for the mapped room types and send them
- pull_bookings: fetch reservations and mirror them as local bookings
- test_connection / refresh_room_mappings

Every provider call attempt is written to ProviderPayload and committed,
successful or not. Failed calls are retried up to settings.sync_max_retries
more times with exponential backoff (base * 2^n, capped). Once retries are
exhausted the failure stays recorded for manual reconciliation.

Pulled bookings are applied one per transaction. A booking is identified
by (provider, external_id); the unique constraint on those columns turns a
concurrent duplicate insert into an IntegrityError that is counted, not
raised.
"""

import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking, BookingSource, BookingStatus
from ..models.channel import ProviderPayload, SyncDirection, SyncOperation
from ..models.room import RoomType
from ..utils.dates import as_naive_utc, date_range, utcnow
from ..utils.logging_config import get_logger
from .availability_service import AvailabilityCalculator
from .channels.base import (
    AvailabilityUpdate,
    ChannelProvider,
    ExternalBooking,
    PullResult,
    RateUpdate,
    SyncResult,
)
from .channels.registry import load_room_mappings
from .inventory_service import consume_inventory, release_inventory

logger = get_logger(__name__)

DEFAULT_PULL_LOOKBACK = timedelta(hours=24)


@dataclass
class PullSummary:
    success: bool
    message: str
    since: datetime
    fetched: int = 0
    created: int = 0
    cancelled: int = 0
    unchanged: int = 0
    skipped: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class SyncOrchestrator:
    """Runs sync operations against one provider with retry and audit."""

    def __init__(
        self,
        db: Session,
        provider: ChannelProvider,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None
    ):
        self.db = db
        self.provider = provider
        self.sleep = sleep
        self.max_retries = settings.sync_max_retries if max_retries is None else max_retries
        self.backoff_base = settings.sync_backoff_base_seconds if backoff_base is None else backoff_base
        self.backoff_max = settings.sync_backoff_max_seconds if backoff_max is None else backoff_max

    # ==================== Retry / audit ====================

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry n (0-based): min(base * 2^n, max)."""
        return min(self.backoff_base * (2 ** retry_number), self.backoff_max)

    def _record_attempt(
        self,
        operation: SyncOperation,
        direction: SyncDirection,
        attempt: int,
        success: bool,
        error: Optional[str],
        started_at: datetime,
        duration_ms: int,
        request_summary: Optional[Dict]
    ):
        payload = ProviderPayload(
            provider=self.provider.name,
            operation=operation.value,
            direction=direction.value,
            request_payload=getattr(self.provider, "last_request", None) or request_summary,
            response_payload=_jsonable(getattr(self.provider, "last_response", None)),
            success=success,
            error_message=error[:1000] if error else None,
            attempt=attempt,
            started_at=started_at,
            duration_ms=duration_ms
        )
        self.db.add(payload)
        self.db.commit()

    def _call_provider(self, operation: SyncOperation, call: Callable[[], SyncResult]) -> SyncResult:
        """Adapters report failures as results; anything they raise is turned into one here."""
        try:
            return call()
        except Exception as e:
            logger.exception(f"[{self.provider.name}] {operation.value} raised instead of returning a result")
            message = f"{type(e).__name__}: {e}"
            return SyncResult(success=False, message=message, errors=[message])

    def _run(
        self,
        operation: SyncOperation,
        direction: SyncDirection,
        call: Callable[[], SyncResult],
        request_summary: Optional[Dict] = None
    ) -> SyncResult:
        total_attempts = self.max_retries + 1
        result = SyncResult(success=False, message="not attempted")

        for attempt in range(1, total_attempts + 1):
            started_at = utcnow()
            start_time = time.time()
            result = self._call_provider(operation, call)
            duration_ms = int((time.time() - start_time) * 1000)

            error = None if result.success else "; ".join(result.errors or [result.message])
            self._record_attempt(
                operation, direction, attempt, result.success, error, started_at, duration_ms, request_summary
            )
            logger.sync_attempt(self.provider.name, operation.value, attempt, result.success, duration_ms, error)

            if result.success:
                return result

            if not result.retryable:
                logger.error(
                    f"[{self.provider.name}] {operation.value} failed with a non-retryable error, "
                    f"left for manual reconciliation: {result.message}"
                )
                return result

            if attempt < total_attempts:
                delay = self.backoff_delay(attempt - 1)
                logger.warning(
                    f"[{self.provider.name}] {operation.value} failed, retrying in {delay}s "
                    f"(attempt {attempt}/{total_attempts})"
                )
                self.sleep(delay)

        logger.error(
            f"[{self.provider.name}] {operation.value} failed after {total_attempts} attempts, "
            f"left for manual reconciliation: {result.message}"
        )
        return result

    # ==================== Push ====================

    def _mapped_room_types(self, room_type_id: Optional[str]) -> Dict[str, str]:
        mappings = load_room_mappings(self.db, self.provider.name)
        if room_type_id:
            mappings = {k: v for k, v in mappings.items() if k == room_type_id}
        return mappings

    def build_availability_updates(
        self,
        start: date,
        end: date,
        room_type_id: Optional[str] = None
    ) -> List[AvailabilityUpdate]:
        """Dates without an inventory row are pushed as 0 rooms."""
        calculator = AvailabilityCalculator(self.db)
        updates = []
        for internal_id, code in sorted(self._mapped_room_types(room_type_id).items()):
            remaining = calculator.remaining_for_dates(internal_id, start, end)
            for day in date_range(start, end):
                updates.append(AvailabilityUpdate(code, day, remaining.get(day, 0)))
        return updates

    def build_rate_updates(
        self,
        start: date,
        end: date,
        room_type_id: Optional[str] = None
    ) -> List[RateUpdate]:
        mappings = self._mapped_room_types(room_type_id)
        if not mappings:
            return []

        room_types = self.db.query(RoomType).filter(
            RoomType.id.in_(list(mappings)),
            RoomType.is_active == True  # noqa: E712
        ).order_by(RoomType.id).all()

        return [
            RateUpdate(mappings[room_type.id], day, room_type.base_rate)
            for room_type in room_types
            for day in date_range(start, end)
        ]

    def push_availability(self, start: date, end: date, room_type_id: Optional[str] = None) -> SyncResult:
        updates = self.build_availability_updates(start, end, room_type_id)
        if not updates:
            return SyncResult(success=True, message="No mapped room types to push", records_processed=0)

        return self._run(
            SyncOperation.AVAILABILITY, SyncDirection.PUSH,
            lambda: self.provider.push_availability(updates),
            {"start": start.isoformat(), "end": end.isoformat(), "count": len(updates)}
        )

    def push_rates(self, start: date, end: date, room_type_id: Optional[str] = None) -> SyncResult:
        updates = self.build_rate_updates(start, end, room_type_id)
        if not updates:
            return SyncResult(success=True, message="No mapped room types to push", records_processed=0)

        return self._run(
            SyncOperation.RATES, SyncDirection.PUSH,
            lambda: self.provider.push_rates(updates),
            {"start": start.isoformat(), "end": end.isoformat(), "count": len(updates)}
        )

    # ==================== Pull ====================

    def last_successful_pull(self) -> Optional[datetime]:
        """Send time of the last successful pull for this provider."""
        row = self.db.query(ProviderPayload).filter(
            ProviderPayload.provider == self.provider.name,
            ProviderPayload.operation == SyncOperation.BOOKINGS.value,
            ProviderPayload.direction == SyncDirection.PULL.value,
            ProviderPayload.success == True  # noqa: E712
        ).order_by(ProviderPayload.created_at.desc()).first()
        if row is None:
            return None
        return row.started_at or row.created_at

    def pull_bookings(self, since: Optional[datetime] = None) -> PullSummary:
        if since is None:
            since = self.last_successful_pull() or (utcnow() - DEFAULT_PULL_LOOKBACK)
        else:
            since = as_naive_utc(since)

        result = self._run(
            SyncOperation.BOOKINGS, SyncDirection.PULL,
            lambda: self.provider.pull_bookings(since),
            {"since": since.isoformat()}
        )

        summary = PullSummary(success=result.success, message=result.message, since=since)
        if not result.success:
            summary.errors = list(result.errors or [])
            return summary

        bookings = result.bookings if isinstance(result, PullResult) else []
        summary.fetched = len(bookings)
        summary.errors = list(result.errors or [])

        code_to_room_type = {
            code: room_type_id
            for room_type_id, code in load_room_mappings(self.db, self.provider.name).items()
        }

        for external in bookings:
            self._apply_external_booking(external, code_to_room_type, summary)

        summary.message = (
            f"Fetched {summary.fetched}: {summary.created} created, {summary.cancelled} cancelled, "
            f"{summary.unchanged} unchanged, {len(summary.skipped)} skipped"
        )
        logger.info(f"[{self.provider.name}] {summary.message}")
        return summary

    def _apply_external_booking(
        self,
        external: ExternalBooking,
        code_to_room_type: Dict[str, str],
        summary: PullSummary
    ):
        room_type_id = code_to_room_type.get(external.external_room_code)
        if room_type_id is None:
            summary.skipped.append(
                f"{external.external_id}: room code {external.external_room_code} is not mapped"
            )
            return
        if external.check_out <= external.check_in:
            summary.skipped.append(f"{external.external_id}: checkout is not after check-in")
            return

        existing = self.db.query(Booking).filter(
            Booking.provider == self.provider.name,
            Booking.external_id == external.external_id
        ).first()

        if existing is not None:
            if external.is_cancelled and existing.status != BookingStatus.CANCELLED.value:
                self._cancel_local_copy(existing)
                summary.cancelled += 1
            else:
                summary.unchanged += 1
            return

        if external.is_cancelled:
            summary.unchanged += 1
            return

        now = utcnow()
        booking = Booking(
            room_type_id=room_type_id,
            check_in=external.check_in,
            check_out=external.check_out,
            guests=max(external.guest_count, 1),
            nights=(external.check_out - external.check_in).days,
            room_total=external.total_amount,
            service_charge=0,
            tax_on_room=0,
            tax_on_service=0,
            total_amount=external.total_amount,
            status=BookingStatus.PAID.value,
            guest_name=external.guest_name,
            guest_email=external.guest_email or "",
            guest_phone=external.guest_phone,
            paid_at=now,
            source=BookingSource.OTA.value,
            provider=self.provider.name,
            external_id=external.external_id,
        )

        try:
            self.db.add(booking)
            self.db.flush()
            consume_inventory(self.db, room_type_id, external.check_in, external.check_out)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"[{self.provider.name}] Booking {external.external_id} already imported concurrently")
            summary.unchanged += 1
            return
        except Exception:
            self.db.rollback()
            raise

        summary.created += 1
        logger.booking_created(booking.id, booking.guest_email, booking.total_amount)

    def _cancel_local_copy(self, booking: Booking):
        old_status = booking.status
        try:
            booking.status = BookingStatus.CANCELLED.value
            booking.cancelled_at = utcnow()
            if old_status == BookingStatus.PAID.value:
                release_inventory(self.db, booking.room_type_id, booking.check_in, booking.check_out)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.booking_status_changed(
            booking.id, old_status, BookingStatus.CANCELLED.value,
            provider=self.provider.name, external_id=booking.external_id
        )

    # ==================== Connection / mappings ====================

    def test_connection(self) -> SyncResult:
        def call() -> SyncResult:
            if self.provider.test_connection():
                return SyncResult(success=True, message="Connection OK")
            error = getattr(self.provider, "last_error", None) or "Connection test failed"
            return SyncResult(success=False, message=error, errors=[error])

        return self._run(SyncOperation.CONNECTION, SyncDirection.PULL, call)

    def refresh_room_mappings(self) -> Dict[str, str]:
        """Mappings confirmed by the provider; {} when the provider call fails."""
        found: Dict[str, str] = {}

        def call() -> SyncResult:
            found.clear()
            found.update(self.provider.get_room_mappings())
            error = getattr(self.provider, "last_error", None)
            if error:
                return SyncResult(success=False, message=error, errors=[error])
            return SyncResult(success=True, message=f"{len(found)} mappings confirmed", records_processed=len(found))

        result = self._run(SyncOperation.ROOM_MAPPINGS, SyncDirection.PULL, call)
        return dict(found) if result.success else {}

    def sync_all(self, horizon_days: Optional[int] = None) -> Dict[str, SyncResult]:
        """Availability and rate push over the sync horizon starting today."""
        start = utcnow().date()
        end = start + timedelta(days=(horizon_days or settings.sync_horizon_days) - 1)
        return {
            "availability": self.push_availability(start, end),
            "rates": self.push_rates(start, end),
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (dict, list, str, int, float, bool)):
        return value
    return {"raw": str(value)[:1000]}
