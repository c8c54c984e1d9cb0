"""Storage access for the studio tables.

Each repository wraps one SQLAlchemy ``Session``. Repositories stage and
commit changes but never raise HTTP errors; callers decide what a missing
row means.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from backend.models.exercise import Exercise
from backend.models.scheduled_class import ScheduledClass
from backend.models.site_settings import SETTINGS_ROW_ID, SiteSettings
from backend.models.student_exercise import StudentExercise
from backend.models.user import ROLE_STUDENT, ROLE_TEACHER, User

logger = logging.getLogger(__name__)


def _apply_changes(instance: Any, changes: dict[str, Any]) -> None:
    for key, value in changes.items():
        setattr(instance, key, value)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def get_student(self, student_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == student_id, User.role == ROLE_STUDENT).first()

    def get_teacher(self) -> Optional[User]:
        return self.db.query(User).filter(User.role == ROLE_TEACHER).order_by(User.created_at.asc()).first()

    def list_students(self) -> list[User]:
        return self.db.query(User).filter(User.role == ROLE_STUDENT).order_by(User.name.asc()).all()

    def existing_student_ids(self, student_ids: Iterable[str]) -> set[str]:
        ids = set(student_ids)
        if not ids:
            return set()
        rows = self.db.query(User.id).filter(User.id.in_(ids), User.role == ROLE_STUDENT).all()
        return {row[0] for row in rows}

    def count_assignments(self, student_id: str) -> int:
        return self.db.query(func.count(StudentExercise.id)).filter(
            StudentExercise.student_id == student_id,
        ).scalar() or 0

    def count_classes(self, student_id: str) -> int:
        return self.db.query(func.count(ScheduledClass.id)).filter(
            ScheduledClass.student_id == student_id,
        ).scalar() or 0

    def create(self, *, email: str, hashed_password: str, name: str, role: str) -> User:
        user = User(email=email, hashed_password=hashed_password, name=name, role=role)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update(self, user: User, changes: dict[str, Any]) -> User:
        _apply_changes(user, changes)
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.db.delete(user)
        self.db.commit()


class ExerciseRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, exercise_id: str) -> Optional[Exercise]:
        return self.db.query(Exercise).filter(Exercise.id == exercise_id).first()

    def list_with_assignment_counts(self) -> list[tuple[Exercise, int]]:
        return (
            self.db.query(Exercise, func.count(StudentExercise.id))
            .outerjoin(StudentExercise, StudentExercise.exercise_id == Exercise.id)
            .group_by(Exercise.id)
            .order_by(Exercise.created_at.desc())
            .all()
        )

    def existing_ids(self, exercise_ids: Iterable[str]) -> set[str]:
        ids = set(exercise_ids)
        if not ids:
            return set()
        rows = self.db.query(Exercise.id).filter(Exercise.id.in_(ids)).all()
        return {row[0] for row in rows}

    def create(self, **fields: Any) -> Exercise:
        exercise = Exercise(**fields)
        self.db.add(exercise)
        self.db.commit()
        self.db.refresh(exercise)
        return exercise

    def update(self, exercise: Exercise, changes: dict[str, Any]) -> Exercise:
        _apply_changes(exercise, changes)
        self.db.commit()
        self.db.refresh(exercise)
        return exercise

    def delete(self, exercise: Exercise) -> None:
        self.db.delete(exercise)
        self.db.commit()


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, student_id: str, exercise_id: str) -> Optional[StudentExercise]:
        return self.db.query(StudentExercise).filter(
            StudentExercise.student_id == student_id,
            StudentExercise.exercise_id == exercise_id,
        ).first()

    def for_student(self, student_id: str) -> list[StudentExercise]:
        return (
            self.db.query(StudentExercise)
            .options(joinedload(StudentExercise.exercise))
            .filter(StudentExercise.student_id == student_id)
            .order_by(StudentExercise.assigned_at.desc())
            .all()
        )

    def for_exercise(self, exercise_id: str) -> list[StudentExercise]:
        return (
            self.db.query(StudentExercise)
            .options(joinedload(StudentExercise.student))
            .filter(StudentExercise.exercise_id == exercise_id)
            .order_by(StudentExercise.assigned_at.asc())
            .all()
        )

    def exercise_ids_for_student(self, student_id: str) -> list[str]:
        rows = self.db.query(StudentExercise.exercise_id).filter(
            StudentExercise.student_id == student_id,
        ).order_by(StudentExercise.assigned_at.asc()).all()
        return [row[0] for row in rows]

    def student_ids_for_exercise(self, exercise_id: str) -> list[str]:
        rows = self.db.query(StudentExercise.student_id).filter(
            StudentExercise.exercise_id == exercise_id,
        ).order_by(StudentExercise.assigned_at.asc()).all()
        return [row[0] for row in rows]

    def replace(self, pairs_to_add: list[tuple[str, str]], pairs_to_remove: list[tuple[str, str]]) -> None:
        """Delete then insert (student_id, exercise_id) pairs in one transaction."""
        if not pairs_to_add and not pairs_to_remove:
            return

        try:
            for student_id, exercise_id in pairs_to_remove:
                self.db.query(StudentExercise).filter(
                    StudentExercise.student_id == student_id,
                    StudentExercise.exercise_id == exercise_id,
                ).delete(synchronize_session=False)
            for student_id, exercise_id in pairs_to_add:
                self.db.add(StudentExercise(student_id=student_id, exercise_id=exercise_id))
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted one of the pairs first; retry the
            # inserts one by one and skip whichever already exist.
            self.db.rollback()
            logger.info('Assignment insert hit an existing pair, retrying without duplicates.')
            for student_id, exercise_id in pairs_to_remove:
                self.db.query(StudentExercise).filter(
                    StudentExercise.student_id == student_id,
                    StudentExercise.exercise_id == exercise_id,
                ).delete(synchronize_session=False)
            for student_id, exercise_id in pairs_to_add:
                if self.get(student_id, exercise_id) is None:
                    self.db.add(StudentExercise(student_id=student_id, exercise_id=exercise_id))
            self.db.commit()

    def delete(self, assignment: StudentExercise) -> None:
        self.db.delete(assignment)
        self.db.commit()


class ScheduledClassRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, class_id: str) -> Optional[ScheduledClass]:
        return (
            self.db.query(ScheduledClass)
            .options(joinedload(ScheduledClass.student))
            .filter(ScheduledClass.id == class_id)
            .first()
        )

    def search(
        self,
        student_id: Optional[str] = None,
        start_from: Optional[datetime] = None,
        start_until: Optional[datetime] = None,
    ) -> list[ScheduledClass]:
        query = self.db.query(ScheduledClass).options(joinedload(ScheduledClass.student))
        if student_id:
            query = query.filter(ScheduledClass.student_id == student_id)
        if start_from is not None:
            query = query.filter(ScheduledClass.start_time >= start_from)
        if start_until is not None:
            query = query.filter(ScheduledClass.start_time <= start_until)
        return query.order_by(ScheduledClass.start_time.asc()).all()

    def recent_for_student(self, student_id: str, limit: int = 10) -> list[ScheduledClass]:
        return (
            self.db.query(ScheduledClass)
            .filter(ScheduledClass.student_id == student_id)
            .order_by(ScheduledClass.start_time.desc())
            .limit(limit)
            .all()
        )

    def create(self, **fields: Any) -> ScheduledClass:
        scheduled_class = ScheduledClass(**fields)
        self.db.add(scheduled_class)
        self.db.commit()
        self.db.refresh(scheduled_class)
        return scheduled_class

    def update(self, scheduled_class: ScheduledClass, changes: dict[str, Any]) -> ScheduledClass:
        _apply_changes(scheduled_class, changes)
        self.db.commit()
        self.db.refresh(scheduled_class)
        return scheduled_class

    def delete(self, scheduled_class: ScheduledClass) -> None:
        self.db.delete(scheduled_class)
        self.db.commit()


class SiteSettingsRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self) -> Optional[SiteSettings]:
        return self.db.query(SiteSettings).filter(SiteSettings.id == SETTINGS_ROW_ID).first()

    def get_or_create(self) -> SiteSettings:
        settings = self.get()
        if settings is not None:
            return settings

        settings = SiteSettings(
            id=SETTINGS_ROW_ID,
            teacher_name=None,
            teacher_bio=None,
            teacher_photo=None,
            pricing=None,
            contact_info=None,
        )
        self.db.add(settings)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost the race against another first-time read.
            self.db.rollback()
            existing = self.get()
            if existing is None:
                raise
            return existing

        logger.info('Created default site settings row.')
        self.db.refresh(settings)
        return settings

    def update(self, settings: SiteSettings, changes: dict[str, Any]) -> SiteSettings:
        _apply_changes(settings, changes)
        self.db.commit()
        self.db.refresh(settings)
        return settings
