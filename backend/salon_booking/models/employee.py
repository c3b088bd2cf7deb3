"""
Employee model and the employee <-> service assignment table
"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Table, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


employee_services = Table(
    "employee_services",
    Base.metadata,
    Column("employee_id", Integer, ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class Employee(Base):
    """Staff member who performs services"""

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=True)
    # Login of the staff member, used to check "own schedule" edits
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    services = relationship("Service", secondary=employee_services, back_populates="employees")
    weekly_slots = relationship(
        "WeeklyAvailabilitySlot",
        back_populates="employee",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    exceptions = relationship(
        "AvailabilityException",
        back_populates="employee",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    appointments = relationship(
        "Appointment",
        back_populates="employee",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def offers(self, service) -> bool:
        return any(s.id == service.id for s in self.services)

    def __repr__(self):
        status = "active" if self.is_active else "inactive"
        return f"<Employee {self.name} ({status})>"
