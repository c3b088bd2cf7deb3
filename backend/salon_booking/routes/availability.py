"""
API router for services, employee schedules and free slots
"""
import logging
from datetime import date as date_type, datetime, time
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import errors
from ..auth import Actor, get_actor
from ..database import get_db
from ..services.availability import AvailabilityService
from ..services.conflicts import ConflictChecker
from ..services.slots import SlotService
from ..services.staff import StaffService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["availability"])


# ==================== Pydantic Schemas ====================

class ServiceResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    duration_minutes: int
    price: float

    class Config:
        from_attributes = True


class EmployeeResponse(BaseModel):
    id: int
    name: str
    is_active: bool

    class Config:
        from_attributes = True


class ServiceAssignment(BaseModel):
    service_ids: List[int]


class SlotsResponse(BaseModel):
    date: date_type
    slots: List[str]  # "HH:MM"


class ConflictingAppointment(BaseModel):
    """Occupied range only; no client or guest data"""
    id: int
    start_time: datetime
    end_time: datetime
    status: str
    service_title: Optional[str] = None


class ConflictResponse(BaseModel):
    count: int
    appointments: List[ConflictingAppointment]


class WeeklySlot(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0=Mon
    start_time: time
    end_time: time
    is_available: bool = True

    class Config:
        from_attributes = True


class WeeklyAvailabilityUpdate(BaseModel):
    slots: List[WeeklySlot]


class ExceptionCreate(BaseModel):
    exception_date: date_type
    is_available: bool = False
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = Field(None, max_length=200)


class ExceptionResponse(BaseModel):
    id: int
    employee_id: int
    exception_date: date_type
    is_available: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class ExceptionCreated(BaseModel):
    exception: ExceptionResponse
    conflicts: ConflictResponse


def conflict_response(report) -> ConflictResponse:
    return ConflictResponse(
        count=report.count,
        appointments=[
            ConflictingAppointment(
                id=apt.id,
                start_time=apt.start_time,
                end_time=apt.end_time,
                status=apt.status,
                service_title=apt.service.title if apt.service else None
            )
            for apt in report.appointments
        ]
    )


# ==================== Services ====================

@router.get("/services", response_model=List[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    """Active services"""
    return StaffService(db).list_services()


@router.get("/services/{service_id}/employees", response_model=List[EmployeeResponse])
def list_employees_for_service(service_id: int, db: Session = Depends(get_db)):
    return StaffService(db).list_employees_for_service(service_id)


@router.put("/employees/{employee_id}/services", response_model=EmployeeResponse)
def assign_services(
    employee_id: int,
    data: ServiceAssignment,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return StaffService(db).assign_services(employee_id, data.service_ids, actor)


# ==================== Slots ====================

@router.get("/employees/{employee_id}/slots", response_model=SlotsResponse)
def get_available_slots(
    employee_id: int,
    service_id: int = Query(..., description="Service whose duration is booked"),
    date: date_type = Query(..., description="YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """Free start times of an employee for a service on a date"""
    return SlotsResponse(
        date=date,
        slots=SlotService(db).get_available_slots(employee_id, service_id, date)
    )


@router.get("/employees/{employee_id}/available-dates", response_model=List[date_type])
def get_available_dates(
    employee_id: int,
    service_id: int = Query(...),
    days: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    """Dates with at least one free slot, starting today"""
    return SlotService(db).get_available_dates(employee_id, service_id, days_ahead=days)


@router.get("/employees/{employee_id}/conflicts", response_model=ConflictResponse)
def check_conflicts(
    employee_id: int,
    date: date_type = Query(...),
    start: Optional[time] = Query(None, description="HH:MM"),
    end: Optional[time] = Query(None, description="HH:MM"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Active appointments in a range (or starting on the whole date), staff only"""
    if not actor.is_staff:
        raise errors.AuthorizationError("Only staff can check schedule conflicts.")
    if (start is None) != (end is None):
        raise HTTPException(status_code=400, detail="Provide both start and end, or neither.")

    start_dt = datetime.combine(date, start) if start else None
    end_dt = datetime.combine(date, end) if end else None
    try:
        report = ConflictChecker(db).check(employee_id, date, start_dt, end_dt)
    except SQLAlchemyError:
        logger.exception("Conflict check failed for employee %s on %s", employee_id, date)
        raise errors.StorageError("Conflicts could not be checked, please try again.")
    return conflict_response(report)


# ==================== Weekly schedule ====================

@router.get("/employees/{employee_id}/availability", response_model=List[WeeklySlot])
def get_weekly_availability(employee_id: int, db: Session = Depends(get_db)):
    return AvailabilityService(db).get_weekly_availability(employee_id)


@router.put("/employees/{employee_id}/availability", response_model=List[WeeklySlot])
def set_weekly_availability(
    employee_id: int,
    data: WeeklyAvailabilityUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Replace the recurring weekly schedule"""
    rows = [slot.model_dump() for slot in data.slots]
    return AvailabilityService(db).set_weekly_availability(employee_id, rows, actor)


# ==================== Exceptions ====================

@router.get("/employees/{employee_id}/exceptions", response_model=List[ExceptionResponse])
def list_exceptions(
    employee_id: int,
    from_date: Optional[date_type] = Query(None),
    db: Session = Depends(get_db)
):
    """Upcoming date exceptions"""
    return AvailabilityService(db).list_exceptions(employee_id, from_date)


@router.post("/employees/{employee_id}/exceptions", response_model=ExceptionCreated, status_code=201)
def add_exception(
    employee_id: int,
    data: ExceptionCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Set a day off or special hours; reports appointments that no longer fit"""
    exception, report = AvailabilityService(db).add_exception(
        employee_id,
        data.exception_date,
        data.is_available,
        actor,
        start_time=data.start_time,
        end_time=data.end_time,
        reason=data.reason
    )
    return ExceptionCreated(
        exception=ExceptionResponse.model_validate(exception),
        conflicts=conflict_response(report)
    )


@router.delete("/exceptions/{exception_id}", status_code=204)
def remove_exception(
    exception_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    AvailabilityService(db).remove_exception(exception_id, actor)
