"""
Booking lifecycle: create, manual reservation, reschedule, status changes

Every mutator returns a BookingResult and never raises to the caller.
Conflict checks and the write that depends on them share one critical
section (see services.locks), so an employee is never double-booked.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import errors
from ..auth import Actor
from ..models.account import Account
from ..models.appointment import Appointment, AppointmentStatus
from ..models.employee import Employee
from ..models.service import Service
from .availability import AvailabilityService
from .conflicts import ConflictChecker
from .locks import appointment_lock, employee_day_lock
from .notifications import NotificationEvent

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is already taken."
OVERLAP_CONSTRAINT = "no_overlapping_active_appointments"

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING.value: {AppointmentStatus.CONFIRMED.value, AppointmentStatus.CANCELLED.value},
    AppointmentStatus.CONFIRMED.value: {AppointmentStatus.CANCELLED.value, AppointmentStatus.COMPLETED.value},
    AppointmentStatus.CANCELLED.value: set(),
    AppointmentStatus.COMPLETED.value: set(),
}

STATUS_EVENTS = {
    AppointmentStatus.CONFIRMED.value: NotificationEvent.BOOKING_CONFIRMED,
    AppointmentStatus.CANCELLED.value: NotificationEvent.BOOKING_CANCELLED,
    AppointmentStatus.COMPLETED.value: NotificationEvent.BOOKING_COMPLETED,
}


class BookingResult(BaseModel):
    """Outcome of a booking mutation"""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    appointment_id: Optional[int] = None

    @classmethod
    def ok(cls, message: str, appointment_id: Optional[int] = None) -> "BookingResult":
        return cls(success=True, message=message, appointment_id=appointment_id)

    @classmethod
    def fail(cls, error: errors.BookingError) -> "BookingResult":
        return cls(success=False, error=error.message, error_type=error.error_type)


@dataclass
class GuestInfo:
    """Walk-in client data entered by staff"""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


def parse_time_of_day(value: Union[str, time]) -> time:
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        raise errors.ValidationError(f"Invalid time '{value}', use HH:MM.")


class BookingService:
    """Validates and persists appointment mutations"""

    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier

    # ==================== Helpers ====================

    def _run(self, action: str, operation, *args) -> BookingResult:
        try:
            return operation(*args)
        except errors.BookingError as e:
            self.db.rollback()
            logger.info("%s rejected: %s", action, e.message)
            return BookingResult.fail(e)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("%s failed in the database", action)
            return BookingResult.fail(
                errors.StorageError("The appointment could not be saved, please try again.")
            )

    def _commit(self):
        """Commit a booking write; the overlap exclusion constraint means "slot taken" """
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if OVERLAP_CONSTRAINT in str(e.orig):
                raise errors.AvailabilityError(SLOT_TAKEN_MESSAGE)
            raise

    def _notify(self, event: NotificationEvent, appointment: Appointment):
        if self.notifier is None:
            return
        try:
            self.notifier.notify(self.db, event, appointment)
        except Exception:
            self.db.rollback()
            logger.exception("Notification %s for appointment %s failed", event.value, appointment.id)

    def _resolve(self, employee_id: int, service_id: int):
        employee = self.db.get(Employee, employee_id)
        if employee is None or not employee.is_active:
            raise errors.ValidationError(f"Employee {employee_id} not found.")

        service = self.db.get(Service, service_id)
        if service is None or not service.is_active:
            raise errors.ValidationError(f"Service {service_id} not found.")

        if not employee.offers(service):
            raise errors.ValidationError(f"{employee.name} does not offer {service.title}.")
        return employee, service

    @staticmethod
    def _ensure_duration(service: Service, start: datetime, end: datetime):
        if start >= end:
            raise errors.ValidationError("Start time must be before end time.")
        if end - start != timedelta(minutes=service.duration_minutes):
            raise errors.ValidationError(
                f"{service.title} takes {service.duration_minutes} minutes."
            )

    def _ensure_free(
        self,
        employee_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None
    ):
        report = ConflictChecker(self.db).check(
            employee_id, start.date(), start, end, exclude_appointment_id=exclude_appointment_id
        )
        if report.has_conflict:
            raise errors.AvailabilityError(SLOT_TAKEN_MESSAGE)

    def _ensure_eligible(self, actor: Actor) -> Account:
        account = self.db.get(Account, actor.user_id)
        if account is None or not account.email_verified:
            raise errors.AuthorizationError("Verify your e-mail address before booking.")
        return account

    def _load_for_update(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).with_for_update().first()
        if appointment is None:
            raise errors.NotFoundError(f"Appointment {appointment_id} not found.")
        return appointment

    @staticmethod
    def _ensure_can_act(actor: Optional[Actor], appointment: Appointment):
        if actor is None:
            raise errors.AuthorizationError("Sign in to manage appointments.")
        if actor.is_staff or actor.owns(appointment):
            return
        raise errors.AuthorizationError("You can only manage your own appointments.")

    # ==================== Client booking ====================

    def create_appointment(
        self,
        employee_id: int,
        service_id: int,
        start: datetime,
        end: datetime,
        actor: Optional[Actor],
        notes: Optional[str] = None
    ) -> BookingResult:
        """Book a slot for the acting user"""
        return self._run(
            "Booking", self._create_appointment, employee_id, service_id, start, end, actor, notes
        )

    def _create_appointment(self, employee_id, service_id, start, end, actor, notes):
        if actor is None:
            raise errors.AuthorizationError("Sign in to book an appointment.")

        if actor.is_staff:
            account = self.db.get(Account, actor.user_id)
        else:
            account = self._ensure_eligible(actor)

        employee, service = self._resolve(employee_id, service_id)
        self._ensure_duration(service, start, end)

        with employee_day_lock(self.db, employee.id, start.date()):
            if not actor.is_staff:
                AvailabilityService(self.db).ensure_within_working_hours(
                    employee.id, start.date(), start, end
                )
            self._ensure_free(employee.id, start, end)

            appointment = Appointment(
                employee_id=employee.id,
                service_id=service.id,
                account_id=account.id if account else None,
                start_time=start,
                end_time=end,
                status=AppointmentStatus.CONFIRMED.value,
                notes=notes
            )
            self.db.add(appointment)
            self._commit()

        appointment_id = appointment.id
        logger.info(
            "Appointment %s booked: employee %s, %s-%s",
            appointment_id, employee.id, start, end
        )
        self._notify(NotificationEvent.BOOKING_CONFIRMED, appointment)
        return BookingResult.ok("Appointment booked.", appointment_id)

    # ==================== Manual reservation ====================

    def create_manual_reservation(
        self,
        service_id: int,
        employee_id: int,
        target_date: date,
        time_of_day: Union[str, time],
        guest: GuestInfo,
        actor: Optional[Actor]
    ) -> BookingResult:
        """Staff books a walk-in or phone guest"""
        return self._run(
            "Manual reservation", self._create_manual_reservation,
            service_id, employee_id, target_date, time_of_day, guest, actor
        )

    def _create_manual_reservation(self, service_id, employee_id, target_date, time_of_day, guest, actor):
        if actor is None or not actor.is_staff:
            raise errors.AuthorizationError("Only staff can create manual reservations.")
        if not guest.name or not guest.name.strip():
            raise errors.ValidationError("Guest name is required.")

        start = datetime.combine(target_date, parse_time_of_day(time_of_day))
        employee, service = self._resolve(employee_id, service_id)
        end = start + timedelta(minutes=service.duration_minutes)

        with employee_day_lock(self.db, employee.id, target_date):
            AvailabilityService(self.db).ensure_within_working_hours(employee.id, target_date, start, end)
            self._ensure_free(employee.id, start, end)

            account_id = None
            if guest.email:
                account = self.db.query(Account).filter(Account.email == guest.email.strip()).first()
                if account is not None:
                    account_id = account.id

            appointment = Appointment(
                employee_id=employee.id,
                service_id=service.id,
                account_id=account_id,
                guest_name=guest.name.strip(),
                guest_email=guest.email,
                guest_phone=guest.phone,
                start_time=start,
                end_time=end,
                status=AppointmentStatus.CONFIRMED.value,
                notes=guest.notes
            )
            self.db.add(appointment)
            self._commit()

        appointment_id = appointment.id
        logger.info(
            "Manual reservation %s by user %s: employee %s at %s",
            appointment_id, actor.user_id, employee.id, start
        )
        if appointment.contact_email:
            self._notify(NotificationEvent.BOOKING_CONFIRMED, appointment)
        return BookingResult.ok("Reservation created.", appointment_id)

    # ==================== Changes ====================

    def reschedule_appointment(
        self,
        appointment_id: int,
        new_start: datetime,
        new_end: datetime,
        actor: Optional[Actor]
    ) -> BookingResult:
        """Move an appointment; it becomes confirmed again"""
        return self._run(
            "Reschedule", self._reschedule_appointment, appointment_id, new_start, new_end, actor
        )

    def _reschedule_appointment(self, appointment_id, new_start, new_end, actor):
        if new_start >= new_end:
            raise errors.ValidationError("Start time must be before end time.")

        with appointment_lock(self.db, appointment_id):
            appointment = self._load_for_update(appointment_id)
            self._ensure_can_act(actor, appointment)

            with employee_day_lock(self.db, appointment.employee_id, new_start.date()):
                self._ensure_free(
                    appointment.employee_id, new_start, new_end, exclude_appointment_id=appointment.id
                )
                appointment.start_time = new_start
                appointment.end_time = new_end
                appointment.status = AppointmentStatus.CONFIRMED.value
                self._commit()

        logger.info("Appointment %s moved to %s-%s", appointment_id, new_start, new_end)
        self._notify(NotificationEvent.BOOKING_CHANGED, appointment)
        return BookingResult.ok("Appointment rescheduled.", appointment_id)

    def update_appointment_status(
        self,
        appointment_id: int,
        status: Union[str, AppointmentStatus],
        actor: Optional[Actor]
    ) -> BookingResult:
        """Move an appointment along its lifecycle"""
        return self._run("Status update", self._update_status, appointment_id, status, actor)

    def cancel_appointment(self, appointment_id: int, actor: Optional[Actor]) -> BookingResult:
        return self._run(
            "Cancellation", self._update_status, appointment_id, AppointmentStatus.CANCELLED, actor
        )

    def _update_status(self, appointment_id, status, actor):
        try:
            new_status = AppointmentStatus(status).value
        except ValueError:
            raise errors.ValidationError(f"Unknown status '{status}'.")

        with appointment_lock(self.db, appointment_id):
            appointment = self._load_for_update(appointment_id)
            self._ensure_can_act(actor, appointment)

            if not actor.is_staff and new_status != AppointmentStatus.CANCELLED.value:
                raise errors.AuthorizationError("Clients can only cancel their appointments.")

            if new_status not in ALLOWED_TRANSITIONS[appointment.status]:
                raise errors.ValidationError(
                    f"A {appointment.status} appointment cannot become {new_status}."
                )

            appointment.status = new_status
            self._commit()

        logger.info("Appointment %s is now %s", appointment_id, new_status)
        self._notify(STATUS_EVENTS[new_status], appointment)
        return BookingResult.ok(f"Appointment {new_status}.", appointment_id)

    # ==================== Listings ====================

    def list_appointments(self, actor: Actor, employee_id: Optional[int] = None) -> List[Appointment]:
        """Staff calendar view"""
        if not actor.is_staff:
            raise errors.AuthorizationError("Only staff can view the appointment calendar.")

        query = self.db.query(Appointment)
        if employee_id is not None:
            query = query.filter(Appointment.employee_id == employee_id)
        return query.order_by(Appointment.start_time).all()

    def list_my_appointments(self, actor: Actor, now: Optional[datetime] = None) -> List[Appointment]:
        """Upcoming appointments of the acting client"""
        if now is None:
            now = datetime.now()

        return self.db.query(Appointment).filter(
            Appointment.account_id == actor.user_id,
            Appointment.start_time >= now
        ).order_by(Appointment.start_time).all()
