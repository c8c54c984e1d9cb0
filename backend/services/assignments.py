"""Reconciliation of student <-> exercise assignments.

Both directions work the same way: the caller supplies the desired set of
ids for one anchor entity, the current set is read from storage, and only
the difference is written. Re-submitting the same desired set writes
nothing.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from backend.repositories import AssignmentRepository, ExerciseRepository, UserRepository

logger = logging.getLogger(__name__)


class AssignmentTargetError(ValueError):
    """Raised when a desired id does not reference a valid entity."""


@dataclass(frozen=True)
class ReconcileResult:
    added: list[str]
    removed: list[str]

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)


def _unique(ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def diff_assignments(current: Iterable[str], desired: Iterable[str]) -> tuple[list[str], list[str]]:
    """Return ``(to_add, to_remove)``, each in the order of its source list."""
    current_ids = _unique(current)
    desired_ids = _unique(desired)
    current_set = set(current_ids)
    desired_set = set(desired_ids)

    to_add = [item for item in desired_ids if item not in current_set]
    to_remove = [item for item in current_ids if item not in desired_set]
    return to_add, to_remove


def reconcile_student_exercises(db: Session, student_id: str, exercise_ids: list[str]) -> ReconcileResult:
    """Make ``exercise_ids`` the exact set of exercises assigned to the student.

    The student itself must already be verified by the caller.
    """
    desired = _unique(exercise_ids)
    known = ExerciseRepository(db).existing_ids(desired)
    if len(known) != len(desired):
        raise AssignmentTargetError('One or more exercises not found')

    assignments = AssignmentRepository(db)
    to_add, to_remove = diff_assignments(assignments.exercise_ids_for_student(student_id), desired)
    assignments.replace(
        pairs_to_add=[(student_id, exercise_id) for exercise_id in to_add],
        pairs_to_remove=[(student_id, exercise_id) for exercise_id in to_remove],
    )

    result = ReconcileResult(added=to_add, removed=to_remove)
    if result.has_changes:
        logger.info(
            'Reconciled exercises for student %s: %d added, %d removed.',
            student_id,
            len(to_add),
            len(to_remove),
        )
    return result


def reconcile_exercise_students(db: Session, exercise_id: str, student_ids: list[str]) -> ReconcileResult:
    """Make ``student_ids`` the exact set of students assigned the exercise.

    Every id must belong to a user with the STUDENT role.
    """
    desired = _unique(student_ids)
    known = UserRepository(db).existing_student_ids(desired)
    if len(known) != len(desired):
        raise AssignmentTargetError('One or more students not found')

    assignments = AssignmentRepository(db)
    to_add, to_remove = diff_assignments(assignments.student_ids_for_exercise(exercise_id), desired)
    assignments.replace(
        pairs_to_add=[(student_id, exercise_id) for student_id in to_add],
        pairs_to_remove=[(student_id, exercise_id) for student_id in to_remove],
    )

    result = ReconcileResult(added=to_add, removed=to_remove)
    if result.has_changes:
        logger.info(
            'Reconciled students for exercise %s: %d added, %d removed.',
            exercise_id,
            len(to_add),
            len(to_remove),
        )
    return result
