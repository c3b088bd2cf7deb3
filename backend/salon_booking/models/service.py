"""
Service model
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base
from .employee import employee_services


class Service(Base):
    """Service offered by the salon"""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    employees = relationship("Employee", secondary=employee_services, back_populates="services")
    appointments = relationship(
        "Appointment",
        back_populates="service",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="service_duration_positive"),
    )

    def __repr__(self):
        return f"<Service {self.title} ({self.duration_minutes} min)>"
