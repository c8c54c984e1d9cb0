"""Scheduled lesson model definitions."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base, utc_now

PAYMENT_PAID = "PAID"
PAYMENT_UNPAID = "UNPAID"
PAYMENT_STATUSES = (PAYMENT_PAID, PAYMENT_UNPAID)


class ScheduledClass(Base):
    """A lesson booked for one student. end_time is always after start_time."""
    __tablename__ = "scheduled_classes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    payment_status = Column(String, nullable=False, default=PAYMENT_UNPAID)
    notes = Column(Text)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    student = relationship("User", back_populates="scheduled_classes")
