# backend/app/services/schedule_expansion_service.py
"""
Schedule Expansion Service for the scheduling platform

Turns active doctor schedule rules plus date exceptions into concrete
appointment slots over a rolling horizon.

Per rule:
    window = [max(start_date, last_expanded_at + 1), min(today + horizon, end_date)]
    dates -> exception overlay -> slot slicing -> idempotent upsert
    watermark advances only when every candidate was reconciled

Per doctor, rules and exceptions are loaded once, the exception index is
built once, and a failing rule never stops its siblings. The global pass
does the same across doctors.

Callers must serialize passes for the same doctor; watermark writes are not
locked here.
"""

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ScheduleRuleException, ValidationException
from ..core.timezone_utils import get_clinic_today
from ..domain.recurrence import generate_recurrence_dates
from ..domain.schedule_exceptions import ExceptionIndex
from ..domain.schedule_types import ScheduleRuleSpec, SlotCandidate, exception_from_model
from ..domain.slot_materializer import materialize_dates, materialize_one_time_slot
from ..models.schedule_rule import DoctorScheduleRule
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .slot_upsert_service import SlotUpsertService, UpsertResult

logger = logging.getLogger(__name__)

LOG_PREFIX = "[SCHEDULE-EXPANSION]"


@dataclass
class RuleExpansionResult:
    """Outcome of one rule pass."""

    rule_id: str
    window_start: date
    window_end: date
    upsert: UpsertResult = field(default_factory=UpsertResult)
    watermark_advanced: bool = False
    new_version: Optional[int] = None

    @property
    def window_empty(self) -> bool:
        return self.window_start > self.window_end

    @property
    def slots_created(self) -> int:
        return self.upsert.created

    @property
    def slots_updated(self) -> int:
        return self.upsert.updated


@dataclass
class DoctorExpansionResult:
    doctor_id: str
    slots_created: int = 0
    slots_updated: int = 0
    slots_failed: int = 0
    rules_processed: int = 0
    rules_failed: int = 0
    rule_errors: List[str] = field(default_factory=list)

    def add_upsert(self, upsert: UpsertResult) -> None:
        self.slots_created += upsert.created
        self.slots_updated += upsert.updated
        self.slots_failed += upsert.failed


@dataclass
class ExpansionSummary:
    doctors_processed: int = 0
    slots_created: int = 0
    slots_updated: int = 0
    errors: List[str] = field(default_factory=list)


def validate_rule_payload(rule: DoctorScheduleRule) -> ScheduleRuleSpec:
    """
    Validate a rule row (persisted or not) the way expansion will read it.

    Raises:
        ScheduleRuleException: If the rule cannot be evaluated
    """
    spec = ScheduleRuleSpec.from_model(rule)
    if spec.start_time >= spec.end_time:
        raise ScheduleRuleException(
            "start_time must be before end_time", rule_id=spec.id, field="start_time"
        )
    return spec


class ScheduleExpansionService(BaseService):
    """
    Orchestrates recurrence evaluation, exception overlay and slot upserts.

    ``clock`` returns "today" in the clinic timezone and can be replaced in
    tests; ``horizon_weeks`` defaults to settings.schedule_expansion_weeks.
    """

    def __init__(
        self,
        db: Session,
        rule_repository=None,
        exception_repository=None,
        upsert_service: Optional[SlotUpsertService] = None,
        clock: Optional[Callable[[], date]] = None,
        horizon_weeks: Optional[int] = None,
    ):
        super().__init__(db)
        self.rule_repository = (
            rule_repository or RepositoryFactory.create_schedule_rule_repository(db)
        )
        self.exception_repository = (
            exception_repository or RepositoryFactory.create_schedule_exception_repository(db)
        )
        self.upsert_service = upsert_service or SlotUpsertService(db)
        self.clock = clock or get_clinic_today
        self.horizon_weeks = horizon_weeks or settings.schedule_expansion_weeks

    # Window arithmetic

    def today(self) -> date:
        return self.clock()

    def horizon_end(self, today: date) -> date:
        return today + timedelta(weeks=self.horizon_weeks)

    def compute_window(self, rule: ScheduleRuleSpec, today: date) -> Tuple[date, date]:
        """Expansion window for a rule; start > end means nothing to do."""
        if rule.last_expanded_at is not None:
            start = rule.last_expanded_at + timedelta(days=1)
        elif rule.start_date is not None:
            start = rule.start_date
        else:
            start = today
        if rule.start_date is not None and start < rule.start_date:
            start = rule.start_date

        end = self.horizon_end(today)
        if rule.end_date is not None and rule.end_date < end:
            end = rule.end_date
        return start, end

    # Exception loading

    def build_exception_index(self, doctor_id: str) -> ExceptionIndex:
        """
        Index the doctor's exceptions, skipping rows that cannot be evaluated.

        A malformed exception only loses its own date's override; rule
        output for that date is produced as if the row did not exist.
        """
        index = ExceptionIndex()
        for row in self.exception_repository.get_for_doctor(doctor_id):
            try:
                index.add(exception_from_model(row))
            except ValidationException as e:
                self.logger.warning(
                    f"{LOG_PREFIX} Skipping exception {row.id} on {row.exception_date}: {e.message}",
                    extra={"doctor_id": doctor_id, "exception_id": row.id},
                )
        return index

    # Per-rule pass

    def _pin_anchor(
        self, rule: DoctorScheduleRule, spec: ScheduleRuleSpec, window_start: date, window_end: date
    ) -> ScheduleRuleSpec:
        """
        Give a rule stored without ``start_date`` a fixed cadence anchor.

        Interval counting starts at the anchor, so it must not follow the
        moving window start. A never-expanded rule anchors on its first
        window start; one expanded before anchoring uses its creation date.
        """
        if spec.start_date is not None:
            return spec
        if spec.last_expanded_at is None:
            if window_start > window_end:
                return spec
            anchor = window_start
        elif rule.created_at is not None:
            anchor = min(rule.created_at.date(), window_start)
        else:
            anchor = window_start
        if spec.end_date is not None and anchor > spec.end_date:
            return spec

        self.rule_repository.pin_start_date(spec.id, anchor)
        self.logger.info(
            f"{LOG_PREFIX} Rule {spec.id} anchored on {anchor}",
            extra={"rule_id": spec.id, "doctor_id": spec.doctor_id},
        )
        return replace(spec, start_date=anchor)

    def _revisit_candidates(
        self, rule: ScheduleRuleSpec, exceptions: ExceptionIndex, today: date
    ) -> List[SlotCandidate]:
        """Re-apply modify exceptions on already-expanded, still-upcoming dates."""
        if rule.last_expanded_at is None or rule.last_expanded_at < today:
            return []
        modify_dates = set(exceptions.modify_dates_between(today, rule.last_expanded_at))
        if not modify_dates:
            return []
        fired = generate_recurrence_dates(rule, min(modify_dates), max(modify_dates))
        return materialize_dates(rule, [day for day in fired if day in modify_dates], exceptions)

    def expand_rule(
        self, rule: DoctorScheduleRule, exceptions: ExceptionIndex, today: date
    ) -> RuleExpansionResult:
        """
        Expand one rule and advance its watermark on full success.

        Errors raised while evaluating the rule propagate to the caller;
        per-slot persistence failures are counted and stall the watermark.
        """
        try:
            spec = ScheduleRuleSpec.from_model(rule)
            window_start, window_end = self.compute_window(spec, today)
            spec = self._pin_anchor(rule, spec, window_start, window_end)
            result = RuleExpansionResult(
                rule_id=spec.id, window_start=window_start, window_end=window_end
            )

            candidates = self._revisit_candidates(spec, exceptions, today)
            if not result.window_empty:
                dates = generate_recurrence_dates(spec, window_start, window_end)
                candidates.extend(materialize_dates(spec, dates, exceptions))
        except Exception as e:
            prometheus_metrics.inc_rule_expansion("error")
            self.logger.error(
                f"{LOG_PREFIX} Rule {rule.id} failed to expand: {str(e)}",
                extra={"rule_id": rule.id, "doctor_id": rule.doctor_id},
            )
            raise

        if candidates:
            result.upsert = self.upsert_service.upsert_slots(candidates)

        if result.window_empty:
            prometheus_metrics.inc_rule_expansion("noop")
            self.logger.debug(
                f"{LOG_PREFIX} Rule {spec.id} already expanded through {spec.last_expanded_at}"
            )
            return result

        if result.upsert.fully_applied:
            result.new_version = spec.next_version
            self.rule_repository.update_watermark(
                spec.id, last_expanded_at=window_end, last_expanded_version=result.new_version
            )
            result.watermark_advanced = True
            prometheus_metrics.inc_rule_expansion("advanced")
            self.logger.info(
                f"{LOG_PREFIX} Rule {spec.id}: {window_start}..{window_end}, "
                f"{result.upsert.created} created, {result.upsert.updated} updated, "
                f"version {result.new_version}",
                extra={"rule_id": spec.id, "doctor_id": spec.doctor_id},
            )
        else:
            prometheus_metrics.inc_rule_expansion("stalled")
            self.logger.warning(
                f"{LOG_PREFIX} Rule {spec.id}: {result.upsert.failed} of "
                f"{result.upsert.attempted} slots failed, watermark left at "
                f"{spec.last_expanded_at}",
                extra={"rule_id": spec.id, "doctor_id": spec.doctor_id},
            )
        return result

    # Per-doctor pass

    def _expand_one_time_slots(
        self, doctor_id: str, exceptions: ExceptionIndex, today: date
    ) -> UpsertResult:
        candidates: List[SlotCandidate] = []
        for item in exceptions.one_time_slots_between(today, self.horizon_end(today)):
            candidates.extend(materialize_one_time_slot(item))
        if not candidates:
            return UpsertResult()
        with self.transaction():
            return self.upsert_service.upsert_slots(candidates)

    @BaseService.measure_operation("expand_doctor_schedule")
    def expand_doctor_schedule(
        self, doctor_id: str, today: Optional[date] = None
    ) -> DoctorExpansionResult:
        """
        Expand every active rule of one doctor.

        Each rule commits on its own; a rule that raises is rolled back,
        recorded in ``rule_errors`` and skipped.
        """
        today = today or self.today()
        result = DoctorExpansionResult(doctor_id=doctor_id)

        rules = self.rule_repository.get_active_rules(doctor_id)
        exceptions = self.build_exception_index(doctor_id)
        self.log_operation(
            "expand_doctor_schedule",
            doctor_id=doctor_id,
            rule_count=len(rules),
            exception_dates=len(exceptions),
        )

        try:
            result.add_upsert(self._expand_one_time_slots(doctor_id, exceptions, today))
        except Exception as e:
            self.logger.error(
                f"{LOG_PREFIX} Doctor {doctor_id}: one-time slots failed: {str(e)}",
                extra={"doctor_id": doctor_id},
            )
            result.rule_errors.append(f"one-time slots: {str(e)}")

        for rule in rules:
            rule_id = rule.id
            try:
                with self.transaction():
                    rule_result = self.expand_rule(rule, exceptions, today)
            except Exception as e:
                result.rules_failed += 1
                result.rule_errors.append(f"rule {rule_id}: {str(e)}")
                continue
            result.rules_processed += 1
            result.add_upsert(rule_result.upsert)

        self.logger.info(
            f"{LOG_PREFIX} Doctor {doctor_id}: {result.slots_created} created, "
            f"{result.slots_updated} updated, {result.rules_failed} rules failed",
            extra={"doctor_id": doctor_id},
        )
        return result

    # Global pass

    @BaseService.measure_operation("expand_all_doctors")
    def expand_all_doctors(self, today: Optional[date] = None) -> ExpansionSummary:
        """Expand every doctor that owns at least one active rule."""
        today = today or self.today()
        summary = ExpansionSummary()
        doctor_ids = self.rule_repository.get_doctor_ids_with_active_rules()
        self.logger.info(f"{LOG_PREFIX} Starting expansion for {len(doctor_ids)} doctors")

        for doctor_id in doctor_ids:
            try:
                doctor_result = self.expand_doctor_schedule(doctor_id, today=today)
            except Exception as e:
                self.db.rollback()
                message = f"Doctor {doctor_id}: {str(e)}"
                self.logger.error(f"{LOG_PREFIX} {message}", extra={"doctor_id": doctor_id})
                summary.errors.append(message)
                continue
            summary.slots_created += doctor_result.slots_created
            summary.slots_updated += doctor_result.slots_updated
            summary.errors.extend(
                f"Doctor {doctor_id}: {error}" for error in doctor_result.rule_errors
            )

        summary.doctors_processed = len(doctor_ids)
        self.logger.info(
            f"{LOG_PREFIX} Completed: {summary.doctors_processed} doctors, "
            f"{summary.slots_created} created, {summary.slots_updated} updated, "
            f"{len(summary.errors)} errors"
        )
        return summary
