import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, get_current_user, require_teacher
from backend.database import get_db, to_naive_utc
from backend.models.scheduled_class import PAYMENT_STATUSES, PAYMENT_UNPAID, ScheduledClass
from backend.repositories import ScheduledClassRepository, UserRepository
from backend.routes.common import storage_failure
from backend.schemas import CamelModel, MessageResponse, ScheduledClassResponse, to_scheduled_class_response
from backend.services.scheduling import InvalidIntervalError, resolve_interval, validate_interval

router = APIRouter(tags=['classes'])

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_NOTES_LENGTH = 2000
CLASS_NOT_FOUND = 'Class not found'
STUDENT_NOT_FOUND = 'Student not found'
INVALID_PAYMENT_STATUS = 'Invalid payment status'


def _check_student_id(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Student is required')
    return normalized


def _check_title(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Title is required')
    if len(normalized) > MAX_TITLE_LENGTH:
        raise ValueError('Title is too long')
    return normalized


def _check_notes(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value) > MAX_NOTES_LENGTH:
        raise ValueError('Notes are too long')
    return value


def _check_payment_status(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in PAYMENT_STATUSES:
        raise ValueError(INVALID_PAYMENT_STATUS)
    return normalized


class CreateClassRequest(CamelModel):
    student_id: str
    title: str
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    payment_status: Optional[str] = None

    @field_validator('student_id')
    @classmethod
    def validate_student_id(cls, value: str) -> str:
        return _check_student_id(value)

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _check_title(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _check_notes(value)

    @field_validator('payment_status')
    @classmethod
    def validate_payment_status(cls, value: Optional[str]) -> Optional[str]:
        return _check_payment_status(value)


class UpdateClassRequest(CamelModel):
    student_id: Optional[str] = None
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    payment_status: Optional[str] = None

    @field_validator('student_id')
    @classmethod
    def validate_student_id(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_student_id(value)

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_title(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return None if value is None else to_naive_utc(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _check_notes(value)

    @field_validator('payment_status')
    @classmethod
    def validate_payment_status(cls, value: Optional[str]) -> Optional[str]:
        return _check_payment_status(value)


class PaymentStatusRequest(CamelModel):
    payment_status: str

    @field_validator('payment_status', mode='before')
    @classmethod
    def validate_payment_status(cls, value) -> str:
        if not isinstance(value, str):
            raise ValueError(INVALID_PAYMENT_STATUS)
        return _check_payment_status(value)


def get_class_or_404(classes: ScheduledClassRepository, class_id: str) -> ScheduledClass:
    scheduled_class = classes.get(class_id)
    if scheduled_class is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CLASS_NOT_FOUND)
    return scheduled_class


def resolve_student_filter(current_user: CurrentUser, student_id: Optional[str]) -> Optional[str]:
    """Students are pinned to their own classes; teachers may filter freely."""
    if current_user.is_student:
        if student_id and student_id != current_user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')
        return current_user.id
    return student_id or None


def _ensure_student_exists(db: Session, student_id: str) -> None:
    if UserRepository(db).get_student(student_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STUDENT_NOT_FOUND)


@router.get('', response_model=list[ScheduledClassResponse])
def list_classes(
    student_id: Optional[str] = Query(default=None, alias='studentId'),
    start_date: Optional[datetime] = Query(default=None, alias='startDate'),
    end_date: Optional[datetime] = Query(default=None, alias='endDate'),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    scoped_student_id = resolve_student_filter(current_user, student_id)

    try:
        classes = ScheduledClassRepository(db).search(
            student_id=scoped_student_id,
            start_from=to_naive_utc(start_date) if start_date else None,
            start_until=to_naive_utc(end_date) if end_date else None,
        )
        return [to_scheduled_class_response(scheduled_class) for scheduled_class in classes]
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch classes') from exc


@router.post('', response_model=ScheduledClassResponse, status_code=status.HTTP_201_CREATED)
def create_class(
    data: CreateClassRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        _ensure_student_exists(db, data.student_id)

        try:
            validate_interval(data.start_time, data.end_time)
        except InvalidIntervalError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        classes = ScheduledClassRepository(db)
        created = classes.create(
            student_id=data.student_id,
            title=data.title,
            start_time=data.start_time,
            end_time=data.end_time,
            notes=data.notes,
            payment_status=data.payment_status or PAYMENT_UNPAID,
        )
        scheduled_class = classes.get(created.id)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to create class') from exc

    logger.info('Scheduled class %s for student %s', scheduled_class.id, scheduled_class.student_id)
    return to_scheduled_class_response(scheduled_class)


@router.get('/{class_id}', response_model=ScheduledClassResponse)
def get_class(
    class_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        scheduled_class = get_class_or_404(ScheduledClassRepository(db), class_id)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch class') from exc

    if current_user.is_student and scheduled_class.student_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')

    return to_scheduled_class_response(scheduled_class)


@router.put('/{class_id}', response_model=ScheduledClassResponse)
def update_class(
    class_id: str,
    data: UpdateClassRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        classes = ScheduledClassRepository(db)
        scheduled_class = get_class_or_404(classes, class_id)

        changes = data.model_dump(exclude_unset=True)
        # Required columns ignore an explicit null; only notes may be cleared.
        for field in ('student_id', 'title', 'start_time', 'end_time', 'payment_status'):
            if field in changes and changes[field] is None:
                del changes[field]

        new_student_id = changes.get('student_id')
        if new_student_id and new_student_id != scheduled_class.student_id:
            _ensure_student_exists(db, new_student_id)

        try:
            start_time, end_time = resolve_interval(
                scheduled_class.start_time,
                scheduled_class.end_time,
                new_start=changes.get('start_time'),
                new_end=changes.get('end_time'),
            )
        except InvalidIntervalError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        changes['start_time'] = start_time
        changes['end_time'] = end_time
        classes.update(scheduled_class, changes)
        scheduled_class = classes.get(class_id)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to update class') from exc

    return to_scheduled_class_response(scheduled_class)


@router.patch('/{class_id}', response_model=ScheduledClassResponse)
def update_payment_status(
    class_id: str,
    data: PaymentStatusRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        classes = ScheduledClassRepository(db)
        scheduled_class = get_class_or_404(classes, class_id)
        classes.update(scheduled_class, {'payment_status': data.payment_status})
        scheduled_class = classes.get(class_id)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to update payment status') from exc

    logger.info('Class %s marked %s', class_id, data.payment_status)
    return to_scheduled_class_response(scheduled_class)


@router.delete('/{class_id}', response_model=MessageResponse)
def delete_class(
    class_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        classes = ScheduledClassRepository(db)
        scheduled_class = get_class_or_404(classes, class_id)
        classes.delete(scheduled_class)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to delete class') from exc

    logger.info('Deleted class %s', class_id)
    return MessageResponse(message='Class deleted successfully')
