"""
Bookable slot generation
"""
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.employee import Employee
from ..models.service import Service
from .availability import AvailabilityService, TimeWindow
from .conflicts import ConflictChecker, overlaps

settings = get_settings()
logger = logging.getLogger(__name__)


def generate_slots(
    windows: Iterable[TimeWindow],
    target_date: date,
    duration_minutes: int,
    busy: Iterable[Tuple[datetime, datetime]],
    step_minutes: int
) -> List[str]:
    """
    Start times ("HH:MM") of every [cursor, cursor + duration) that fits in a
    window and overlaps no busy range. Cursors advance by step_minutes from
    each window start; results of all windows are merged, de-duplicated and sorted.
    """
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    busy = list(busy)
    found = set()

    for window in windows:
        cursor, window_end = window.bounds(target_date)
        while cursor + duration <= window_end:
            candidate_end = cursor + duration
            if not any(overlaps(cursor, candidate_end, b_start, b_end) for b_start, b_end in busy):
                found.add(cursor)
            cursor += step

    return [slot.strftime("%H:%M") for slot in sorted(found)]


class SlotService:
    """Answers "when can this employee perform this service on this date" """

    def __init__(self, db: Session, step_minutes: Optional[int] = None):
        self.db = db
        self.step_minutes = step_minutes or settings.SLOT_STEP_MINUTES

    def _bookable_service(self, employee_id: int, service_id: int) -> Optional[Service]:
        employee = self.db.get(Employee, employee_id)
        service = self.db.get(Service, service_id)
        if employee is None or service is None:
            return None
        if not employee.is_active or not service.is_active or not employee.offers(service):
            return None
        return service

    def _slots_for(self, employee_id: int, service: Service, target_date: date) -> List[str]:
        windows = AvailabilityService(self.db).resolve_windows(employee_id, target_date)
        if not windows:
            return []

        appointments = ConflictChecker(self.db).active_on(employee_id, target_date)
        return generate_slots(
            windows,
            target_date,
            service.duration_minutes,
            [(apt.start_time, apt.end_time) for apt in appointments],
            self.step_minutes
        )

    def get_available_slots(self, employee_id: int, service_id: int, target_date: date) -> List[str]:
        """
        Free start times for a service with an employee on a date.
        Lookup failures degrade to an empty list.
        """
        try:
            service = self._bookable_service(employee_id, service_id)
            if service is None:
                return []
            return self._slots_for(employee_id, service, target_date)
        except SQLAlchemyError:
            logger.exception(
                "Slot lookup failed for employee %s, service %s on %s",
                employee_id, service_id, target_date
            )
            return []

    def get_available_dates(
        self,
        employee_id: int,
        service_id: int,
        start_date: Optional[date] = None,
        days_ahead: Optional[int] = None
    ) -> List[date]:
        """Dates with at least one free slot, at most BOOKING_DAYS_AHEAD days out"""
        if start_date is None:
            start_date = date.today()
        if days_ahead is None or days_ahead > settings.BOOKING_DAYS_AHEAD:
            days_ahead = settings.BOOKING_DAYS_AHEAD

        try:
            service = self._bookable_service(employee_id, service_id)
            if service is None:
                return []

            available_dates = []
            for i in range(days_ahead):
                check_date = start_date + timedelta(days=i)
                if self._slots_for(employee_id, service, check_date):
                    available_dates.append(check_date)
            return available_dates
        except SQLAlchemyError:
            logger.exception("Date lookup failed for employee %s, service %s", employee_id, service_id)
            return []
