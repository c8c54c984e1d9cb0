"""Assignment of an exercise to a student."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.database import Base, utc_now


class StudentExercise(Base):
    __tablename__ = "student_exercises"
    __table_args__ = (
        UniqueConstraint("student_id", "exercise_id", name="uq_student_exercises_pair"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    exercise_id = Column(String(36), ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=utc_now, nullable=False)
    notes = Column(Text)

    student = relationship("User", back_populates="assigned_exercises")
    exercise = relationship("Exercise", back_populates="assigned_to")
