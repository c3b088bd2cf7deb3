"""
Employee availability: recurring weekly hours and date-specific exceptions
"""
from sqlalchemy import (
    Column, Integer, ForeignKey, Date, Time, String, Boolean, TIMESTAMP,
    CheckConstraint, UniqueConstraint, event
)
from sqlalchemy.orm import Session, relationship, validates
from sqlalchemy.sql import func
from .. import errors
from ..database import Base

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class WeeklyAvailabilitySlot(Base):
    """
    One working window of an employee on a day of the week.
    Several rows on the same day describe a split shift
    (e.g. 09:00-12:00 and 13:00-17:00).
    """

    __tablename__ = "weekly_availability"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Mon, 6=Sun
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    is_recurring = Column(Boolean, default=True, nullable=False)
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", back_populates="weekly_slots")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="weekly_day_of_week_range"),
        CheckConstraint("start_time < end_time", name="weekly_window_ordered"),
    )

    @validates("day_of_week")
    def validate_day_of_week(self, key, value):
        if not 0 <= value <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {value}")
        return value

    def __repr__(self):
        status = "on" if self.is_available else "off"
        return f"<WeeklyAvailabilitySlot {DAY_NAMES[self.day_of_week]} {self.start_time}-{self.end_time} {status}>"


class AvailabilityException(Base):
    """
    Full override of the weekly schedule for one date.
    is_available=False is a day off; otherwise start/end give the only
    working window of that date (missing bounds extend to the day edges).
    """

    __tablename__ = "availability_exceptions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    exception_date = Column(Date, nullable=False, index=True)
    is_available = Column(Boolean, default=False, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(String(200), nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    employee = relationship("Employee", back_populates="exceptions")

    __table_args__ = (
        UniqueConstraint("employee_id", "exception_date", name="unique_exception_per_day"),
        CheckConstraint(
            "start_time IS NULL OR end_time IS NULL OR start_time < end_time",
            name="exception_window_ordered"
        ),
    )

    def __repr__(self):
        status = "available" if self.is_available else "off"
        return f"<AvailabilityException {self.exception_date} {status} - {self.reason}>"


def _overlap_message(row, other):
    return (
        f"{DAY_NAMES[row.day_of_week]}: window {row.start_time:%H:%M}–{row.end_time:%H:%M} "
        f"overlaps {other.start_time:%H:%M}–{other.end_time:%H:%M}."
    )


@event.listens_for(Session, "before_flush")
def _reject_overlapping_weekly_rows(session, flush_context, instances):
    """Weekly rows of one employee and day never overlap, whatever writes them"""
    changed = [
        obj for obj in list(session.new) + list(session.dirty)
        if isinstance(obj, WeeklyAvailabilitySlot) and obj.employee_id is not None
    ]
    if not changed:
        return

    deleted_ids = {
        obj.id for obj in session.deleted if isinstance(obj, WeeklyAvailabilitySlot)
    }
    changed_ids = {obj.id for obj in changed if obj.id is not None}

    for index, row in enumerate(changed):
        for other in changed[index + 1:]:
            if (other.employee_id, other.day_of_week) == (row.employee_id, row.day_of_week) \
                    and row.start_time < other.end_time and other.start_time < row.end_time:
                raise errors.ValidationError(_overlap_message(other, row))

        with session.no_autoflush:
            stored = session.query(WeeklyAvailabilitySlot).filter(
                WeeklyAvailabilitySlot.employee_id == row.employee_id,
                WeeklyAvailabilitySlot.day_of_week == row.day_of_week,
                WeeklyAvailabilitySlot.is_recurring.is_(True),
                WeeklyAvailabilitySlot.start_time < row.end_time,
                WeeklyAvailabilitySlot.end_time > row.start_time
            ).all()

        for other in stored:
            if other is row or other.id in deleted_ids or other.id in changed_ids:
                continue
            raise errors.ValidationError(_overlap_message(row, other))
