import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, get_current_user, require_teacher
from backend.database import get_db
from backend.models.exercise import Exercise
from backend.repositories import AssignmentRepository, ExerciseRepository
from backend.routes.common import storage_failure
from backend.schemas import (
    AssignedStudentResponse,
    CamelModel,
    ExerciseResponse,
    MessageResponse,
    ReconcileResponse,
    is_valid_url,
    to_assigned_student_response,
    to_exercise_response,
)
from backend.services.assignments import AssignmentTargetError, reconcile_exercise_students

router = APIRouter(tags=['exercises'])

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
EXERCISE_NOT_FOUND = 'Exercise not found'


def _check_title(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Title is required')
    if len(normalized) > MAX_TITLE_LENGTH:
        raise ValueError('Title is too long')
    return normalized


def _check_description(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValueError('Description is too long')
    return value


def _check_audio_url(value: str) -> str:
    if not is_valid_url(value):
        raise ValueError('Invalid audio URL')
    return value


def _check_audio_key(value: str) -> str:
    if not value.strip():
        raise ValueError('Audio key is required')
    return value


class CreateExerciseRequest(CamelModel):
    title: str
    description: Optional[str] = None
    audio_url: str
    audio_key: str

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _check_title(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _check_description(value)

    @field_validator('audio_url')
    @classmethod
    def validate_audio_url(cls, value: str) -> str:
        return _check_audio_url(value)

    @field_validator('audio_key')
    @classmethod
    def validate_audio_key(cls, value: str) -> str:
        return _check_audio_key(value)


class UpdateExerciseRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    audio_url: Optional[str] = None
    audio_key: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_title(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _check_description(value)

    @field_validator('audio_url')
    @classmethod
    def validate_audio_url(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_audio_url(value)

    @field_validator('audio_key')
    @classmethod
    def validate_audio_key(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_audio_key(value)


class AssignStudentsRequest(CamelModel):
    student_ids: list[str]


class UnassignStudentRequest(CamelModel):
    student_id: str

    @field_validator('student_id')
    @classmethod
    def validate_student_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Student ID is required')
        return value


class ExerciseListItem(ExerciseResponse):
    assigned_count: int


class ExerciseDetailResponse(ExerciseResponse):
    assigned_students: list[AssignedStudentResponse] = []


class ExerciseAssignmentsResponse(CamelModel):
    exercise_id: str
    assigned_students: list[AssignedStudentResponse]


def get_exercise_or_404(exercises: ExerciseRepository, exercise_id: str) -> Exercise:
    exercise = exercises.get(exercise_id)
    if exercise is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=EXERCISE_NOT_FOUND)
    return exercise


def _assigned_students(db: Session, exercise_id: str) -> list[AssignedStudentResponse]:
    return [
        to_assigned_student_response(assignment)
        for assignment in AssignmentRepository(db).for_exercise(exercise_id)
    ]


@router.get('', response_model=list[ExerciseListItem])
def list_exercises(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        return [
            ExerciseListItem(**to_exercise_response(exercise).model_dump(), assigned_count=count)
            for exercise, count in ExerciseRepository(db).list_with_assignment_counts()
        ]
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch exercises') from exc


@router.post('', response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
def create_exercise(
    data: CreateExerciseRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        exercise = ExerciseRepository(db).create(
            title=data.title,
            description=data.description,
            audio_url=data.audio_url,
            audio_key=data.audio_key,
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to create exercise') from exc

    logger.info('Created exercise %s', exercise.id)
    return to_exercise_response(exercise)


@router.get('/{exercise_id}', response_model=ExerciseDetailResponse)
def get_exercise(
    exercise_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        if current_user.is_student:
            # Students only see exercises assigned to them, and never the roster.
            assignment = AssignmentRepository(db).get(current_user.id, exercise_id)
            if assignment is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=EXERCISE_NOT_FOUND)
            return ExerciseDetailResponse(**to_exercise_response(assignment.exercise).model_dump())

        exercise = get_exercise_or_404(ExerciseRepository(db), exercise_id)
        return ExerciseDetailResponse(
            **to_exercise_response(exercise).model_dump(),
            assigned_students=_assigned_students(db, exercise.id),
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch exercise') from exc


@router.put('/{exercise_id}', response_model=ExerciseResponse)
def update_exercise(
    exercise_id: str,
    data: UpdateExerciseRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        exercises = ExerciseRepository(db)
        exercise = get_exercise_or_404(exercises, exercise_id)

        changes = data.model_dump(exclude_unset=True)
        # title, audio_url and audio_key are NOT NULL; an explicit null leaves them unchanged.
        for field in ('title', 'audio_url', 'audio_key'):
            if field in changes and changes[field] is None:
                del changes[field]

        exercise = exercises.update(exercise, changes)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to update exercise') from exc

    return to_exercise_response(exercise)


@router.delete('/{exercise_id}', response_model=MessageResponse)
def delete_exercise(
    exercise_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        exercises = ExerciseRepository(db)
        exercise = get_exercise_or_404(exercises, exercise_id)
        exercises.delete(exercise)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to delete exercise') from exc

    logger.info('Deleted exercise %s', exercise_id)
    return MessageResponse(message='Exercise deleted successfully')


@router.get('/{exercise_id}/assign', response_model=ExerciseAssignmentsResponse)
def list_exercise_assignments(
    exercise_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        exercise = get_exercise_or_404(ExerciseRepository(db), exercise_id)
        return ExerciseAssignmentsResponse(
            exercise_id=exercise.id,
            assigned_students=_assigned_students(db, exercise.id),
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch assignments') from exc


@router.post('/{exercise_id}/assign', response_model=ReconcileResponse)
def assign_exercise(
    exercise_id: str,
    data: AssignStudentsRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        get_exercise_or_404(ExerciseRepository(db), exercise_id)
        result = reconcile_exercise_students(db, exercise_id, data.student_ids)
    except AssignmentTargetError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to assign exercise') from exc

    return ReconcileResponse(added=len(result.added), removed=len(result.removed))


@router.delete('/{exercise_id}/assign', response_model=MessageResponse)
def unassign_exercise(
    exercise_id: str,
    data: UnassignStudentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        assignments = AssignmentRepository(db)
        assignment = assignments.get(data.student_id, exercise_id)
        if assignment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Assignment not found')
        assignments.delete(assignment)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to remove assignment') from exc

    logger.info('Removed exercise %s from student %s', exercise_id, data.student_id)
    return MessageResponse(message='Assignment removed successfully')
