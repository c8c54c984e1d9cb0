import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import EmailStr, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, get_current_user, require_teacher
from backend.auth.passwords import hash_password
from backend.database import get_db
from backend.models.user import ROLE_STUDENT, User
from backend.repositories import AssignmentRepository, ScheduledClassRepository, UserRepository
from backend.routes.auth_routes import DUPLICATE_EMAIL_MESSAGE, RegisterRequest, normalize_email
from backend.routes.common import storage_failure
from backend.schemas import (
    AssignedExerciseResponse,
    CamelModel,
    ReconcileResponse,
    ScheduledClassResponse,
    SuccessResponse,
    UtcDatetime,
    to_assigned_exercise_response,
    to_scheduled_class_response,
)
from backend.services.assignments import AssignmentTargetError, reconcile_student_exercises

router = APIRouter(tags=['students'])

logger = logging.getLogger(__name__)

MAX_STUDENT_NAME_LENGTH = 100
RECENT_CLASS_LIMIT = 10
STUDENT_NOT_FOUND = 'Student not found'
EMAIL_IN_USE_MESSAGE = 'Email already in use'


class CreateStudentRequest(RegisterRequest):
    pass


class UpdateStudentRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required')
        if len(normalized) > MAX_STUDENT_NAME_LENGTH:
            raise ValueError('Name is too long')
        return normalized

    @field_validator('email', mode='before')
    @classmethod
    def validate_email(cls, value):
        if isinstance(value, str):
            return normalize_email(value)
        return value


class AssignExercisesRequest(CamelModel):
    exercise_ids: list[str]


class StudentCounts(CamelModel):
    assigned_exercises: int
    scheduled_classes: int


class StudentSummaryResponse(CamelModel):
    id: str
    name: Optional[str] = None
    email: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    counts: StudentCounts


class StudentDetailResponse(StudentSummaryResponse):
    assigned_exercises: list[AssignedExerciseResponse]
    scheduled_classes: list[ScheduledClassResponse]


def to_student_summary(users: UserRepository, student: User) -> StudentSummaryResponse:
    return StudentSummaryResponse(
        id=student.id,
        name=student.name,
        email=student.email,
        created_at=student.created_at,
        updated_at=student.updated_at,
        counts=StudentCounts(
            assigned_exercises=users.count_assignments(student.id),
            scheduled_classes=users.count_classes(student.id),
        ),
    )


def get_student_or_404(users: UserRepository, student_id: str) -> User:
    student = users.get_student(student_id)
    if student is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STUDENT_NOT_FOUND)
    return student


@router.get('', response_model=list[StudentSummaryResponse])
def list_students(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        users = UserRepository(db)
        return [to_student_summary(users, student) for student in users.list_students()]
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch students') from exc


@router.post('', response_model=StudentSummaryResponse, status_code=status.HTTP_201_CREATED)
def create_student(
    data: CreateStudentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        users = UserRepository(db)
        if users.get_by_email(data.email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_MESSAGE)

        student = users.create(
            email=data.email,
            hashed_password=hash_password(data.password),
            name=data.name,
            role=ROLE_STUDENT,
        )
        logger.info('Teacher %s created student %s', current_user.id, student.id)
        return to_student_summary(users, student)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_MESSAGE) from exc
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to create student') from exc


@router.get('/{student_id}', response_model=StudentDetailResponse)
def get_student(
    student_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        users = UserRepository(db)
        student = get_student_or_404(users, student_id)
        summary = to_student_summary(users, student)

        return StudentDetailResponse(
            **summary.model_dump(),
            assigned_exercises=[
                to_assigned_exercise_response(assignment)
                for assignment in AssignmentRepository(db).for_student(student.id)
            ],
            scheduled_classes=[
                to_scheduled_class_response(scheduled_class, include_student=False)
                for scheduled_class in ScheduledClassRepository(db).recent_for_student(
                    student.id,
                    limit=RECENT_CLASS_LIMIT,
                )
            ],
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch student') from exc


@router.put('/{student_id}', response_model=StudentSummaryResponse)
def update_student(
    student_id: str,
    data: UpdateStudentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        users = UserRepository(db)
        student = get_student_or_404(users, student_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        new_email = changes.get('email')
        if new_email and new_email != student.email and users.get_by_email(new_email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_IN_USE_MESSAGE)

        student = users.update(student, changes)
        return to_student_summary(users, student)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_IN_USE_MESSAGE) from exc
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to update student') from exc


@router.delete('/{student_id}', response_model=SuccessResponse)
def delete_student(
    student_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        users = UserRepository(db)
        student = get_student_or_404(users, student_id)
        users.delete(student)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to delete student') from exc

    logger.info('Teacher %s deleted student %s', current_user.id, student_id)
    return SuccessResponse()


@router.get('/{student_id}/exercises', response_model=list[AssignedExerciseResponse])
def list_student_exercises(
    student_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.is_student and current_user.id != student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')

    try:
        return [
            to_assigned_exercise_response(assignment)
            for assignment in AssignmentRepository(db).for_student(student_id)
        ]
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch student exercises') from exc


@router.post('/{student_id}/exercises', response_model=ReconcileResponse)
def assign_student_exercises(
    student_id: str,
    data: AssignExercisesRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        get_student_or_404(UserRepository(db), student_id)
        result = reconcile_student_exercises(db, student_id, data.exercise_ids)
    except AssignmentTargetError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to assign exercises') from exc

    return ReconcileResponse(added=len(result.added), removed=len(result.removed))
