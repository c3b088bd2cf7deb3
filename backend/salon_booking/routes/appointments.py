"""
API router for appointments
"""
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .. import errors
from ..auth import Actor, get_actor
from ..database import get_db
from ..services.booking import BookingResult, BookingService, GuestInfo
from ..services.notifications import NotificationService

router = APIRouter(prefix="/api", tags=["appointments"])


# ==================== Pydantic Schemas ====================

class AppointmentCreate(BaseModel):
    employee_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = Field(None, max_length=600)


class ManualReservationCreate(BaseModel):
    service_id: int
    employee_id: int
    date: date
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$")  # HH:MM
    guest_name: str = Field(..., min_length=2, max_length=100)
    guest_email: Optional[str] = Field(None, max_length=100)
    guest_phone: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=600)


class AppointmentReschedule(BaseModel):
    start_time: datetime
    end_time: datetime


class AppointmentStatusUpdate(BaseModel):
    status: str


class AppointmentResponse(BaseModel):
    id: int
    employee_id: int
    service_id: int
    account_id: Optional[int] = None
    guest_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True


# ==================== Dependencies ====================

def get_notifier() -> NotificationService:
    return NotificationService()


def get_booking_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier)
) -> BookingService:
    return BookingService(db, notifier)


def respond(result: BookingResult) -> BookingResult:
    """Turn a failed BookingResult into an HTTP error"""
    if not result.success:
        raise HTTPException(status_code=errors.status_code_for(result.error_type), detail=result.error)
    return result


# ==================== API Endpoints ====================

@router.post("/appointments", response_model=BookingResult, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    """Book a slot for the signed-in user"""
    return respond(booking.create_appointment(
        data.employee_id, data.service_id, data.start_time, data.end_time, actor, data.notes
    ))


@router.post("/appointments/manual", response_model=BookingResult, status_code=201)
def create_manual_reservation(
    data: ManualReservationCreate,
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    """Staff reservation for a walk-in guest"""
    guest = GuestInfo(
        name=data.guest_name,
        email=data.guest_email,
        phone=data.guest_phone,
        notes=data.notes
    )
    return respond(booking.create_manual_reservation(
        data.service_id, data.employee_id, data.date, data.time, guest, actor
    ))


@router.patch("/appointments/{appointment_id}/reschedule", response_model=BookingResult)
def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    return respond(booking.reschedule_appointment(appointment_id, data.start_time, data.end_time, actor))


@router.patch("/appointments/{appointment_id}/status", response_model=BookingResult)
def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    return respond(booking.update_appointment_status(appointment_id, data.status, actor))


@router.post("/appointments/{appointment_id}/cancel", response_model=BookingResult)
def cancel_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    return respond(booking.cancel_appointment(appointment_id, actor))


@router.get("/appointments", response_model=List[AppointmentResponse])
def list_appointments(
    employee_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    """Calendar of all (or one employee's) appointments, staff only"""
    return booking.list_appointments(actor, employee_id)


@router.get("/appointments/my", response_model=List[AppointmentResponse])
def list_my_appointments(
    actor: Actor = Depends(get_actor),
    booking: BookingService = Depends(get_booking_service)
):
    """Upcoming appointments of the signed-in client"""
    return booking.list_my_appointments(actor)
