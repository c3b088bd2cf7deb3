from datetime import time

import pytest
from sqlalchemy.exc import OperationalError

from salon_booking import errors
from salon_booking.models import Appointment
from salon_booking.services.booking import SLOT_TAKEN_MESSAGE, BookingService, GuestInfo
from salon_booking.services.notifications import NotificationEvent
from salon_booking.services.slots import SlotService

from conftest import MONDAY, TUESDAY, FailingNotifier, RecordingNotifier, add_appointment, add_exception, at


def book(db, salon, start='10:00', end='11:00', actor=None, service=None, notifier=None):
    return BookingService(db, notifier).create_appointment(
        salon.employee.id,
        (service or salon.facial).id,
        at(MONDAY, start),
        at(MONDAY, end),
        actor or salon.client_actor,
    )


# ==================== create ====================

def test_create_appointment_books_and_notifies(db, salon) -> None:
    notifier = RecordingNotifier()

    result = book(db, salon, notifier=notifier)

    assert result.success is True
    assert result.message == 'Appointment booked.'
    appointment = db.get(Appointment, result.appointment_id)
    assert appointment.status == 'confirmed'
    assert appointment.account_id == salon.client.id
    assert notifier.events == [(NotificationEvent.BOOKING_CONFIRMED, result.appointment_id)]


def test_booked_slot_disappears_from_offer(db, salon) -> None:
    slots = SlotService(db)
    assert '10:00' in slots.get_available_slots(salon.employee.id, salon.facial.id, MONDAY)

    assert book(db, salon).success

    after = slots.get_available_slots(salon.employee.id, salon.facial.id, MONDAY)
    assert '09:30' not in after
    assert '10:00' not in after
    assert '10:30' not in after
    assert '09:00' in after and '11:00' in after


def test_unverified_client_cannot_book(db, salon) -> None:
    result = book(db, salon, actor=salon.unverified_actor)

    assert result.success is False
    assert result.error_type == 'AuthorizationError'
    assert db.query(Appointment).count() == 0


def test_anonymous_booking_is_rejected(db, salon) -> None:
    result = BookingService(db).create_appointment(
        salon.employee.id, salon.facial.id, at(MONDAY, '10:00'), at(MONDAY, '11:00'), None
    )

    assert result.error_type == 'AuthorizationError'


def test_unknown_employee_is_a_validation_error(db, salon) -> None:
    result = BookingService(db).create_appointment(
        424242, salon.facial.id, at(MONDAY, '10:00'), at(MONDAY, '11:00'), salon.client_actor
    )

    assert result.success is False
    assert result.error_type == 'ValidationError'


def test_service_not_offered_is_rejected(db, salon) -> None:
    result = book(db, salon, start='10:00', end='10:30', service=salon.manicure)

    assert result.error_type == 'ValidationError'
    assert result.error == 'Eva does not offer Manicure.'


def test_range_must_match_service_duration(db, salon) -> None:
    result = book(db, salon, start='10:00', end='10:30')

    assert result.error_type == 'ValidationError'
    assert result.error == 'Facial takes 60 minutes.'


def test_overlapping_booking_is_rejected(db, salon) -> None:
    add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    result = book(db, salon, start='10:30', end='11:30')

    assert result.success is False
    assert result.error_type == 'AvailabilityError'
    assert result.error == SLOT_TAKEN_MESSAGE


def test_back_to_back_booking_is_allowed(db, salon) -> None:
    add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    assert book(db, salon, start='11:00', end='12:00').success


def test_client_cannot_book_outside_working_hours(db, salon) -> None:
    result = book(db, salon, start='16:30', end='17:30')

    assert result.error_type == 'AvailabilityError'
    assert result.error == 'Outside working hours (09:00–17:00).'


def test_staff_booking_skips_working_hours(db, salon) -> None:
    result = book(db, salon, start='17:00', end='18:00', actor=salon.staff_actor)

    assert result.success is True


def test_notification_failure_does_not_undo_booking(db, salon) -> None:
    result = book(db, salon, notifier=FailingNotifier())

    assert result.success is True
    assert db.get(Appointment, result.appointment_id) is not None


def test_storage_failure_becomes_storage_error(db, salon, monkeypatch) -> None:
    def broken_commit():
        raise OperationalError('INSERT', {}, Exception('disk I/O error'))

    monkeypatch.setattr(db, 'commit', broken_commit)

    result = book(db, salon)

    assert result.success is False
    assert result.error_type == 'StorageError'


# ==================== manual reservation ====================

def test_manual_reservation_outside_exception_window(db, salon) -> None:
    add_exception(db, salon.employee, MONDAY, is_available=True, start=time(13, 0), end=time(15, 0))

    result = BookingService(db).create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '12:30', GuestInfo(name='Walk In'), salon.staff_actor
    )

    assert result.success is False
    assert result.error_type == 'AvailabilityError'
    assert '13:00–15:00' in result.error


def test_manual_reservation_on_day_off(db, salon) -> None:
    add_exception(db, salon.employee, MONDAY, is_available=False, reason='Vacation')

    result = BookingService(db).create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '10:00', GuestInfo(name='Walk In'), salon.staff_actor
    )

    assert result.error_type == 'AvailabilityError'
    assert result.error == 'Employee is off on 2030-01-07 (Vacation).'


def test_manual_reservation_derives_end_from_service(db, salon) -> None:
    notifier = RecordingNotifier()

    result = BookingService(db, notifier).create_manual_reservation(
        salon.massage.id, salon.employee.id, MONDAY, '14:00',
        GuestInfo(name='  Gina Guest ', phone='+421900000009', notes='First visit'),
        salon.staff_actor,
    )

    assert result.success is True
    assert result.message == 'Reservation created.'
    appointment = db.get(Appointment, result.appointment_id)
    assert appointment.start_time == at(MONDAY, '14:00')
    assert appointment.end_time == at(MONDAY, '14:45')
    assert appointment.guest_name == 'Gina Guest'
    assert appointment.account_id is None
    assert appointment.status == 'confirmed'
    # no e-mail, nobody to notify
    assert notifier.events == []


def test_manual_reservation_links_existing_account(db, salon) -> None:
    notifier = RecordingNotifier()

    result = BookingService(db, notifier).create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '09:00',
        GuestInfo(name='Clara', email='clara@example.com'),
        salon.staff_actor,
    )

    appointment = db.get(Appointment, result.appointment_id)
    assert appointment.account_id == salon.client.id
    assert appointment.contact_email == 'clara@example.com'
    assert notifier.events == [(NotificationEvent.BOOKING_CONFIRMED, result.appointment_id)]


def test_manual_reservation_conflict(db, salon) -> None:
    add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    result = BookingService(db).create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '09:30', GuestInfo(name='Walk In'), salon.staff_actor
    )

    assert result.error_type == 'AvailabilityError'
    assert result.error == SLOT_TAKEN_MESSAGE


def test_manual_reservation_requires_staff(db, salon) -> None:
    result = BookingService(db).create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '10:00', GuestInfo(name='Walk In'), salon.client_actor
    )

    assert result.error_type == 'AuthorizationError'


def test_manual_reservation_validates_input(db, salon) -> None:
    service = BookingService(db)

    bad_time = service.create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '25:99', GuestInfo(name='Walk In'), salon.staff_actor
    )
    no_name = service.create_manual_reservation(
        salon.facial.id, salon.employee.id, MONDAY, '10:00', GuestInfo(name='  '), salon.staff_actor
    )

    assert bad_time.error_type == 'ValidationError'
    assert bad_time.error == "Invalid time '25:99', use HH:MM."
    assert no_name.error_type == 'ValidationError'


# ==================== reschedule ====================

def test_reschedule_unknown_appointment(db, salon) -> None:
    result = BookingService(db).reschedule_appointment(
        999, at(MONDAY, '10:00'), at(MONDAY, '11:00'), salon.staff_actor
    )

    assert result.error_type == 'NotFoundError'


def test_reschedule_moves_and_reconfirms(db, salon) -> None:
    notifier = RecordingNotifier()
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'),
        status='pending', account=salon.client,
    )

    result = BookingService(db, notifier).reschedule_appointment(
        booked.id, at(TUESDAY, '12:00'), at(TUESDAY, '13:00'), salon.client_actor
    )

    assert result.success is True
    db.refresh(booked)
    assert (booked.start_time, booked.end_time) == (at(TUESDAY, '12:00'), at(TUESDAY, '13:00'))
    assert booked.status == 'confirmed'
    assert notifier.events == [(NotificationEvent.BOOKING_CHANGED, booked.id)]


def test_reschedule_may_overlap_own_previous_range(db, salon) -> None:
    booked = add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    result = BookingService(db).reschedule_appointment(
        booked.id, at(MONDAY, '10:30'), at(MONDAY, '11:30'), salon.staff_actor
    )

    assert result.success is True


def test_reschedule_onto_other_appointment(db, salon) -> None:
    booked = add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))
    add_appointment(db, salon.employee, salon.facial, at(MONDAY, '14:00'), at(MONDAY, '15:00'))

    result = BookingService(db).reschedule_appointment(
        booked.id, at(MONDAY, '14:30'), at(MONDAY, '15:30'), salon.staff_actor
    )

    assert result.error_type == 'AvailabilityError'
    db.refresh(booked)
    assert booked.start_time == at(MONDAY, '10:00')


def test_reschedule_of_someone_elses_appointment(db, salon) -> None:
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'), account=salon.client
    )

    result = BookingService(db).reschedule_appointment(
        booked.id, at(MONDAY, '12:00'), at(MONDAY, '13:00'), salon.other_actor
    )

    assert result.error_type == 'AuthorizationError'


def test_reschedule_rejects_inverted_range(db, salon) -> None:
    booked = add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    result = BookingService(db).reschedule_appointment(
        booked.id, at(MONDAY, '12:00'), at(MONDAY, '11:00'), salon.staff_actor
    )

    assert result.error_type == 'ValidationError'


# ==================== cancel / status ====================

def test_owner_can_cancel(db, salon) -> None:
    notifier = RecordingNotifier()
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'), account=salon.client
    )

    result = BookingService(db, notifier).cancel_appointment(booked.id, salon.client_actor)

    assert result.success is True
    assert result.message == 'Appointment cancelled.'
    db.refresh(booked)
    assert booked.status == 'cancelled'
    assert notifier.events == [(NotificationEvent.BOOKING_CANCELLED, booked.id)]


def test_cancelled_range_is_offered_again(db, salon) -> None:
    booked = book(db, salon)
    slots = SlotService(db)
    assert '10:00' not in slots.get_available_slots(salon.employee.id, salon.facial.id, MONDAY)

    assert BookingService(db).cancel_appointment(booked.appointment_id, salon.client_actor).success

    assert '10:00' in slots.get_available_slots(salon.employee.id, salon.facial.id, MONDAY)


def test_other_client_cannot_cancel(db, salon) -> None:
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'), account=salon.client
    )

    result = BookingService(db).cancel_appointment(booked.id, salon.other_actor)

    assert result.error_type == 'AuthorizationError'
    db.refresh(booked)
    assert booked.status == 'confirmed'


def test_staff_can_cancel_guest_reservation(db, salon) -> None:
    booked = add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    assert BookingService(db).cancel_appointment(booked.id, salon.staff_actor).success


def test_cancelled_is_terminal(db, salon) -> None:
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'), status='cancelled'
    )

    result = BookingService(db).cancel_appointment(booked.id, salon.staff_actor)

    assert result.error_type == 'ValidationError'
    assert result.error == 'A cancelled appointment cannot become cancelled.'


def test_staff_completes_appointment(db, salon) -> None:
    notifier = RecordingNotifier()
    booked = add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    result = BookingService(db, notifier).update_appointment_status(booked.id, 'completed', salon.staff_actor)

    assert result.success is True
    assert result.message == 'Appointment completed.'
    assert notifier.events == [(NotificationEvent.BOOKING_COMPLETED, booked.id)]


def test_pending_cannot_skip_to_completed(db, salon) -> None:
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'), status='pending'
    )

    result = BookingService(db).update_appointment_status(booked.id, 'completed', salon.staff_actor)

    assert result.error_type == 'ValidationError'


def test_client_can_only_cancel(db, salon) -> None:
    booked = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'),
        status='pending', account=salon.client,
    )

    result = BookingService(db).update_appointment_status(booked.id, 'confirmed', salon.client_actor)

    assert result.error_type == 'AuthorizationError'


def test_unknown_status(db, salon) -> None:
    booked = add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))

    result = BookingService(db).update_appointment_status(booked.id, 'no-show', salon.staff_actor)

    assert result.error_type == 'ValidationError'
    assert result.error == "Unknown status 'no-show'."


# ==================== listings ====================

def test_list_appointments_is_staff_only(db, salon) -> None:
    add_appointment(db, salon.employee, salon.facial, at(MONDAY, '10:00'), at(MONDAY, '11:00'))
    add_appointment(db, salon.colleague, salon.facial, at(MONDAY, '09:00'), at(MONDAY, '10:00'))
    service = BookingService(db)

    assert len(service.list_appointments(salon.staff_actor)) == 2
    assert len(service.list_appointments(salon.staff_actor, employee_id=salon.colleague.id)) == 1
    with pytest.raises(errors.AuthorizationError):
        service.list_appointments(salon.client_actor)


def test_list_my_appointments_only_upcoming(db, salon) -> None:
    past = add_appointment(
        db, salon.employee, salon.facial, at(MONDAY, '09:00'), at(MONDAY, '10:00'), account=salon.client
    )
    upcoming = add_appointment(
        db, salon.employee, salon.facial, at(TUESDAY, '09:00'), at(TUESDAY, '10:00'), account=salon.client
    )
    add_appointment(
        db, salon.employee, salon.facial, at(TUESDAY, '11:00'), at(TUESDAY, '12:00'), account=salon.other_client
    )

    mine = BookingService(db).list_my_appointments(salon.client_actor, now=at(MONDAY, '12:00'))

    assert mine == [upcoming]
    assert past not in mine
