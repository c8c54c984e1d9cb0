"""User model definitions."""

import uuid

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base, utc_now

ROLE_TEACHER = "TEACHER"
ROLE_STUDENT = "STUDENT"
ROLES = (ROLE_TEACHER, ROLE_STUDENT)


class User(Base):
    """Represents the teacher or one of their students."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String)
    role = Column(String, nullable=False, default=ROLE_STUDENT, index=True)  # TEACHER/STUDENT
    bio = Column(Text)
    video_url = Column(String)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    assigned_exercises = relationship(
        "StudentExercise",
        back_populates="student",
        cascade="all, delete-orphan",
    )
    scheduled_classes = relationship(
        "ScheduledClass",
        back_populates="student",
        cascade="all, delete-orphan",
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == ROLE_TEACHER
