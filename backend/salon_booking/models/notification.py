"""
Notification log model
"""
from sqlalchemy import Column, Integer, ForeignKey, String, Text, TIMESTAMP
from sqlalchemy.sql import func
from ..database import Base


class Notification(Base):
    """Message dispatched about an appointment"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    event = Column(String(30), nullable=False)  # booking_confirmed, booking_changed, ...
    channel = Column(String(20), nullable=False)  # email, telegram
    recipient = Column(String(100), nullable=True)
    message = Column(Text, nullable=False)
    status = Column(String(20), default="sent")  # sent, failed
    sent_at = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<Notification {self.event} via {self.channel} (Status: {self.status})>"
