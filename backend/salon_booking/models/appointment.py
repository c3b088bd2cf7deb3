"""
Appointment model
"""
from enum import Enum

from sqlalchemy import (
    Column, Integer, ForeignKey, DateTime, String, Text, TIMESTAMP,
    CheckConstraint, DDL, Index, event
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from ..database import Base


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Only these block a time range
ACTIVE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


class Appointment(Base):
    """Booked appointment of a client (or walk-in guest) with an employee"""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(100), nullable=True)
    guest_phone = Column(String(20), nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.CONFIRMED.value)
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", back_populates="appointments")
    service = relationship("Service", back_populates="appointments")
    account = relationship("Account")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="appointment_range_ordered"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="appointment_status_known"
        ),
        Index("idx_appointments_employee_start", "employee_id", "start_time"),
    )

    @validates("status")
    def validate_status(self, key, value):
        return AppointmentStatus(value).value

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def contact_email(self):
        if self.account is not None:
            return self.account.email
        return self.guest_email

    @property
    def contact_name(self):
        if self.account is not None:
            return self.account.name
        return self.guest_name

    def __repr__(self):
        return f"<Appointment {self.start_time}-{self.end_time} (Status: {self.status})>"


# PostgreSQL refuses overlapping active appointments of one employee outright.
# An insert or update that would double-book raises IntegrityError.
event.listen(
    Appointment.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql")
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        "ALTER TABLE appointments ADD CONSTRAINT no_overlapping_active_appointments "
        "EXCLUDE USING gist (employee_id WITH =, tsrange(start_time, end_time) WITH &&) "
        "WHERE (status IN ('pending', 'confirmed'))"
    ).execute_if(dialect="postgresql")
)
