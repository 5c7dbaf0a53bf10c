# backend/app/services/slot_upsert_service.py
"""
Slot Upsert Service for the scheduling platform

Reconciles materialized slot candidates with the persisted appointment
inventory. Identity is (doctor_id, start_time); an existing row is only
overwritten by a candidate of higher priority, or of equal priority and a
strictly newer version.

Each candidate runs in its own SAVEPOINT so a persistence error on one slot
rolls back that slot only. The outer transaction belongs to the caller.
"""

from dataclasses import dataclass
import logging
from typing import Iterable, Iterator, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AppointmentStatus, SlotOriginType
from ..core.exceptions import RepositoryException
from ..domain.schedule_types import EXCEPTION_PRIORITY, RULE_PRIORITY, SlotCandidate
from ..models.appointment import Appointment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Outcome counts for one reconciliation call."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    attempted: int = 0

    @property
    def fully_applied(self) -> bool:
        """True when every candidate reached a terminal, non-failed outcome."""
        return self.failed == 0 and (self.created + self.updated + self.unchanged) == self.attempted

    def merge(self, other: "UpsertResult") -> "UpsertResult":
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.failed += other.failed
        self.attempted += other.attempted
        return self


def _priority_of(origin_type: Optional[str]) -> int:
    if origin_type == SlotOriginType.EXCEPTION.value:
        return EXCEPTION_PRIORITY
    if origin_type == SlotOriginType.RULE.value:
        return RULE_PRIORITY
    return 0


def should_overwrite(existing: Appointment, candidate: SlotCandidate) -> bool:
    """
    Decide whether ``candidate`` replaces the stored slot.

    Exception provenance outranks rule provenance regardless of version.
    Within the same priority a strictly greater version wins, and a stored
    slot without a version is always replaceable.
    """
    if existing.origin_version is None:
        return True
    existing_priority = _priority_of(existing.origin_type)
    if candidate.priority != existing_priority:
        return candidate.priority > existing_priority
    return candidate.origin_version > existing.origin_version


def _chunks(items: Sequence[SlotCandidate], size: int) -> Iterator[Sequence[SlotCandidate]]:
    for offset in range(0, len(items), size):
        yield items[offset : offset + size]


class SlotUpsertService(BaseService):
    """Idempotent insert-or-update of appointment slots."""

    def __init__(
        self,
        db: Session,
        appointment_repository=None,
        batch_size: Optional[int] = None,
    ):
        super().__init__(db)
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )
        self.batch_size = batch_size or settings.schedule_upsert_batch_size

    @BaseService.measure_operation("upsert_slots")
    def upsert_slots(self, candidates: Iterable[SlotCandidate]) -> UpsertResult:
        """
        Reconcile candidates in bounded batches.

        Per-slot failures are counted, logged and skipped; they never abort
        the remaining candidates.
        """
        pending: List[SlotCandidate] = list(candidates)
        result = UpsertResult()

        for batch in _chunks(pending, self.batch_size):
            batch_result = UpsertResult()
            for candidate in batch:
                self._upsert_one(candidate, batch_result)
            self._flush_batch()
            prometheus_metrics.record_slot_outcomes(
                created=batch_result.created,
                updated=batch_result.updated,
                unchanged=batch_result.unchanged,
                failed=batch_result.failed,
            )
            result.merge(batch_result)

        if result.attempted:
            self.logger.debug(
                "Upserted %d slots: %d created, %d updated, %d unchanged, %d failed",
                result.attempted,
                result.created,
                result.updated,
                result.unchanged,
                result.failed,
            )
        return result

    def _upsert_one(self, candidate: SlotCandidate, result: UpsertResult) -> None:
        result.attempted += 1
        try:
            with self.db.begin_nested():
                existing = self.appointment_repository.get_by_doctor_and_start(
                    candidate.doctor_id, candidate.start_time
                )
                if existing is None:
                    self.appointment_repository.create_slot(
                        doctor_id=candidate.doctor_id,
                        start_time=candidate.start_time,
                        end_time=candidate.end_time,
                        status=AppointmentStatus.AVAILABLE.value,
                        **self._slot_fields(candidate),
                    )
                    result.created += 1
                elif should_overwrite(existing, candidate):
                    self.appointment_repository.update_slot(
                        existing.id,
                        end_time=candidate.end_time,
                        **self._slot_fields(candidate),
                    )
                    result.updated += 1
                else:
                    result.unchanged += 1
        except (RepositoryException, SQLAlchemyError) as e:
            result.failed += 1
            self.logger.error(
                "Failed to upsert slot %s@%s: %s",
                candidate.doctor_id,
                candidate.start_time.isoformat(),
                str(e),
                extra={
                    "doctor_id": candidate.doctor_id,
                    "origin_id": candidate.origin_id,
                    "origin_type": candidate.origin_type.value,
                },
            )

    @staticmethod
    def _slot_fields(candidate: SlotCandidate) -> dict:
        return {
            "appointment_type": candidate.appointment_type,
            "studio_address": candidate.studio_address,
            "origin_type": candidate.origin_type.value,
            "origin_id": candidate.origin_id,
            "origin_version": candidate.origin_version,
        }

    def _flush_batch(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to flush slot batch: {str(e)}")
            raise RepositoryException(f"Failed to flush slot batch: {str(e)}") from e
