"""
Employee availability: resolving working windows for a date and
maintaining the weekly schedule and date exceptions
"""
import logging
from datetime import date, time, datetime, timedelta
from typing import List, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from .. import errors
from ..auth import Actor
from ..models.availability import WeeklyAvailabilitySlot, AvailabilityException
from ..models.employee import Employee
from .conflicts import ConflictChecker, ConflictReport
from .locks import employee_day_lock

logger = logging.getLogger(__name__)

DAY_FULL_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Exception windows without an end run until midnight
END_OF_DAY = time.max


def format_time(value: time) -> str:
    if value == END_OF_DAY:
        return "24:00"
    return value.strftime("%H:%M")


class TimeWindow(NamedTuple):
    """Contiguous time-of-day range during which an employee works"""
    start: time
    end: time

    def bounds(self, on: date) -> Tuple[datetime, datetime]:
        start = datetime.combine(on, self.start)
        if self.end == END_OF_DAY:
            end = datetime.combine(on + timedelta(days=1), time.min)
        else:
            end = datetime.combine(on, self.end)
        return start, end

    def contains(self, on: date, start: datetime, end: datetime) -> bool:
        window_start, window_end = self.bounds(on)
        return window_start <= start and end <= window_end

    def __str__(self):
        return f"{format_time(self.start)}–{format_time(self.end)}"


class AvailabilityService:
    """Resolves and maintains employee working hours"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== Resolution ====================

    def get_exception(self, employee_id: int, target_date: date) -> Optional[AvailabilityException]:
        return self.db.query(AvailabilityException).filter(
            AvailabilityException.employee_id == employee_id,
            AvailabilityException.exception_date == target_date
        ).first()

    def get_weekly_windows(self, employee_id: int, target_date: date) -> List[TimeWindow]:
        rows = self.db.query(WeeklyAvailabilitySlot).filter(
            WeeklyAvailabilitySlot.employee_id == employee_id,
            WeeklyAvailabilitySlot.day_of_week == target_date.weekday(),
            WeeklyAvailabilitySlot.is_recurring.is_(True),
            WeeklyAvailabilitySlot.is_available.is_(True)
        ).order_by(WeeklyAvailabilitySlot.start_time).all()

        return [TimeWindow(row.start_time, row.end_time) for row in rows]

    @staticmethod
    def exception_window(exception: AvailabilityException) -> TimeWindow:
        return TimeWindow(exception.start_time or time.min, exception.end_time or END_OF_DAY)

    def resolve_windows(self, employee_id: int, target_date: date) -> List[TimeWindow]:
        """
        Working windows of an employee on a date, ordered by start.

        A date exception overrides the weekly schedule entirely: a day off
        yields no windows, an available exception yields exactly its window.
        Without an exception every available recurring row of that weekday
        is one window. An empty list means the employee is not working.
        """
        exception = self.get_exception(employee_id, target_date)
        if exception is not None:
            if not exception.is_available:
                return []
            return [self.exception_window(exception)]

        return self.get_weekly_windows(employee_id, target_date)

    def ensure_within_working_hours(
        self,
        employee_id: int,
        target_date: date,
        start: datetime,
        end: datetime
    ) -> TimeWindow:
        """
        Raise AvailabilityError unless [start, end) fits in one working window.
        The message names the permitted window(s) so staff can pick another time.
        """
        exception = self.get_exception(employee_id, target_date)
        if exception is not None:
            if not exception.is_available:
                reason = f" ({exception.reason})" if exception.reason else ""
                raise errors.AvailabilityError(
                    f"Employee is off on {target_date.isoformat()}{reason}."
                )
            window = self.exception_window(exception)
            if not window.contains(target_date, start, end):
                raise errors.AvailabilityError(
                    f"Employee is only available {window} on {target_date.isoformat()}."
                )
            return window

        windows = self.get_weekly_windows(employee_id, target_date)
        if not windows:
            raise errors.AvailabilityError(
                f"Employee does not work on {DAY_FULL_NAMES[target_date.weekday()]}s."
            )

        for window in windows:
            if window.contains(target_date, start, end):
                return window

        allowed = ", ".join(str(window) for window in windows)
        raise errors.AvailabilityError(f"Outside working hours ({allowed}).")

    # ==================== Weekly schedule ====================

    def _get_employee(self, employee_id: int) -> Employee:
        employee = self.db.get(Employee, employee_id)
        if employee is None:
            raise errors.NotFoundError(f"Employee {employee_id} not found.")
        return employee

    @staticmethod
    def _ensure_can_manage(actor: Actor, employee: Employee):
        """Admins manage everyone, staff only their own schedule"""
        if actor.is_admin:
            return
        if actor.is_staff and employee.account_id == actor.user_id:
            return
        raise errors.AuthorizationError("You can only change your own availability.")

    def get_weekly_availability(self, employee_id: int) -> List[WeeklyAvailabilitySlot]:
        self._get_employee(employee_id)
        return self.db.query(WeeklyAvailabilitySlot).filter(
            WeeklyAvailabilitySlot.employee_id == employee_id,
            WeeklyAvailabilitySlot.is_recurring.is_(True)
        ).order_by(WeeklyAvailabilitySlot.day_of_week, WeeklyAvailabilitySlot.start_time).all()

    @staticmethod
    def validate_weekly_rows(rows: List[dict]):
        """Rows must be ordered windows on a valid day and must not overlap per day"""
        by_day = {}
        for row in rows:
            day = row["day_of_week"]
            if not 0 <= day <= 6:
                raise errors.ValidationError(f"day_of_week must be between 0 and 6, got {day}.")
            if row["start_time"] >= row["end_time"]:
                raise errors.ValidationError(
                    f"{DAY_FULL_NAMES[day]}: start {format_time(row['start_time'])} "
                    f"must be before end {format_time(row['end_time'])}."
                )
            by_day.setdefault(day, []).append(row)

        for day, day_rows in by_day.items():
            day_rows.sort(key=lambda r: r["start_time"])
            for previous, current in zip(day_rows, day_rows[1:]):
                if current["start_time"] < previous["end_time"]:
                    raise errors.ValidationError(
                        f"{DAY_FULL_NAMES[day]}: window "
                        f"{TimeWindow(current['start_time'], current['end_time'])} overlaps "
                        f"{TimeWindow(previous['start_time'], previous['end_time'])}."
                    )

    def set_weekly_availability(
        self,
        employee_id: int,
        rows: List[dict],
        actor: Actor
    ) -> List[WeeklyAvailabilitySlot]:
        """
        Replace the recurring weekly schedule of an employee

        Args:
            employee_id: Employee whose schedule is replaced
            rows: dicts with day_of_week, start_time, end_time, is_available
            actor: Acting principal

        Returns:
            The new weekly rows
        """
        employee = self._get_employee(employee_id)
        self._ensure_can_manage(actor, employee)
        self.validate_weekly_rows(rows)

        self.db.query(WeeklyAvailabilitySlot).filter(
            WeeklyAvailabilitySlot.employee_id == employee_id,
            WeeklyAvailabilitySlot.is_recurring.is_(True)
        ).delete(synchronize_session=False)

        for row in rows:
            self.db.add(WeeklyAvailabilitySlot(
                employee_id=employee_id,
                day_of_week=row["day_of_week"],
                start_time=row["start_time"],
                end_time=row["end_time"],
                is_available=row.get("is_available", True),
                is_recurring=True
            ))

        self.db.commit()
        logger.info("Weekly availability of employee %s replaced (%d rows)", employee_id, len(rows))
        return self.get_weekly_availability(employee_id)

    # ==================== Date exceptions ====================

    def add_exception(
        self,
        employee_id: int,
        exception_date: date,
        is_available: bool,
        actor: Actor,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        reason: Optional[str] = None
    ) -> Tuple[AvailabilityException, ConflictReport]:
        """
        Set the exception of an employee for a date, replacing an existing one.

        Returns the exception together with the active appointments of that
        date that no longer fit, so staff can move or cancel them.
        """
        employee = self._get_employee(employee_id)
        self._ensure_can_manage(actor, employee)

        if not is_available:
            start_time = end_time = None
        elif start_time and end_time and start_time >= end_time:
            raise errors.ValidationError(
                f"Exception start {format_time(start_time)} must be before end {format_time(end_time)}."
            )

        # Bookings for the day wait until the exception is stored and scanned
        with employee_day_lock(self.db, employee_id, exception_date):
            exception = self.get_exception(employee_id, exception_date)
            if exception is None:
                exception = AvailabilityException(employee_id=employee_id, exception_date=exception_date)
                self.db.add(exception)

            exception.is_available = is_available
            exception.start_time = start_time
            exception.end_time = end_time
            exception.reason = reason
            self.db.commit()
            self.db.refresh(exception)

            day_report = ConflictChecker(self.db).check(employee_id, exception_date)
        if is_available:
            window = self.exception_window(exception)
            outside = [
                apt for apt in day_report.appointments
                if not window.contains(exception_date, apt.start_time, apt.end_time)
            ]
            report = ConflictReport(count=len(outside), appointments=outside)
        else:
            report = day_report

        if report.count:
            logger.warning(
                "Exception for employee %s on %s conflicts with %d appointment(s)",
                employee_id, exception_date, report.count
            )
        return exception, report

    def remove_exception(self, exception_id: int, actor: Actor) -> None:
        exception = self.db.get(AvailabilityException, exception_id)
        if exception is None:
            raise errors.NotFoundError(f"Availability exception {exception_id} not found.")
        self._ensure_can_manage(actor, exception.employee)

        self.db.delete(exception)
        self.db.commit()

    def list_exceptions(
        self,
        employee_id: int,
        from_date: Optional[date] = None
    ) -> List[AvailabilityException]:
        """Exceptions from a date onwards (today by default)"""
        if from_date is None:
            from_date = date.today()

        return self.db.query(AvailabilityException).filter(
            AvailabilityException.employee_id == employee_id,
            AvailabilityException.exception_date >= from_date
        ).order_by(AvailabilityException.exception_date).all()
