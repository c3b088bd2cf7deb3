"""
Conflict detection against active appointments
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import errors
from ..models.appointment import Appointment, ACTIVE_STATUSES


def day_bounds(target_date: date):
    start = datetime.combine(target_date, time.min)
    return start, start + timedelta(days=1)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open [start, end) ranges: touching endpoints do not overlap"""
    return start < other_end and end > other_start


@dataclass
class ConflictReport:
    """Active appointments occupying a probed range"""
    count: int = 0
    appointments: List[Appointment] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return self.count > 0


class ConflictChecker:
    """Looks up pending/confirmed appointments that block a time range"""

    def __init__(self, db: Session):
        self.db = db

    def _active(self, employee_id: int, exclude_appointment_id: Optional[int] = None):
        query = self.db.query(Appointment).filter(
            Appointment.employee_id == employee_id,
            Appointment.status.in_(ACTIVE_STATUSES)
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query

    def check(
        self,
        employee_id: int,
        target_date: date,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_appointment_id: Optional[int] = None
    ) -> ConflictReport:
        """
        Probe an employee's calendar.

        With start and end: every active appointment overlapping [start, end).
        Without bounds: every active appointment starting on target_date.
        """
        query = self._active(employee_id, exclude_appointment_id)

        if start is not None and end is not None:
            if start >= end:
                raise errors.ValidationError("Start time must be before end time.")
            query = query.filter(
                Appointment.start_time < end,
                Appointment.end_time > start
            )
        elif start is None and end is None:
            day_start, day_end = day_bounds(target_date)
            query = query.filter(
                Appointment.start_time >= day_start,
                Appointment.start_time < day_end
            )
        else:
            raise errors.ValidationError("Provide both start and end time, or neither.")

        appointments = query.order_by(Appointment.start_time).all()
        return ConflictReport(count=len(appointments), appointments=appointments)

    def active_on(self, employee_id: int, target_date: date) -> List[Appointment]:
        """Active appointments touching any part of the date (incl. ones crossing midnight)"""
        day_start, day_end = day_bounds(target_date)
        return self.check(employee_id, target_date, day_start, day_end).appointments
