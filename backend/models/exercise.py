"""Exercise model definitions."""

import uuid

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base, utc_now


class Exercise(Base):
    """A practice exercise with an uploaded audio track."""
    __tablename__ = "exercises"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text)
    audio_url = Column(String, nullable=False)
    audio_key = Column(String, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    assigned_to = relationship(
        "StudentExercise",
        back_populates="exercise",
        cascade="all, delete-orphan",
    )
