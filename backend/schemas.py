"""Shared response schemas and the ORM row -> API payload mappings.

Storage columns are snake_case; every payload leaving the API is camelCase.
The ``to_*`` functions below are the only place where a row becomes a
response, so field renames live in one spot per entity.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from backend.models.exercise import Exercise
from backend.models.scheduled_class import ScheduledClass
from backend.models.site_settings import SiteSettings
from backend.models.student_exercise import StudentExercise
from backend.models.user import User


def _serialize_utc(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec='milliseconds') + 'Z'


UtcDatetime = Annotated[datetime, PlainSerializer(_serialize_utc, return_type=str, when_used='json')]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {'http', 'https'} and bool(parsed.netloc)


def first_error_message(errors: list[dict]) -> str:
    """First pydantic error as a single user-facing message."""
    if not errors:
        return 'Validation failed'

    error = errors[0]
    if error.get('type') == 'missing':
        field = next((str(part) for part in reversed(error.get('loc', ())) if isinstance(part, str)), 'Field')
        if field == 'body':
            return 'Request body is required'
        return f'{field} is required'

    message = str(error.get('msg') or 'Validation failed')
    prefix = 'Value error, '
    if message.startswith(prefix):
        message = message[len(prefix):]
    return message


class MessageResponse(CamelModel):
    message: str


class SuccessResponse(CamelModel):
    success: bool = True


class StudentRef(CamelModel):
    id: str
    name: Optional[str] = None
    email: str


def to_student_ref(user: User) -> StudentRef:
    return StudentRef(id=user.id, name=user.name, email=user.email)


class ExerciseResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    audio_url: str
    audio_key: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


def to_exercise_response(exercise: Exercise) -> ExerciseResponse:
    return ExerciseResponse(
        id=exercise.id,
        title=exercise.title,
        description=exercise.description,
        audio_url=exercise.audio_url,
        audio_key=exercise.audio_key,
        created_at=exercise.created_at,
        updated_at=exercise.updated_at,
    )


class AssignedExerciseResponse(CamelModel):
    id: str
    assigned_at: UtcDatetime
    notes: Optional[str] = None
    exercise: ExerciseResponse


def to_assigned_exercise_response(assignment: StudentExercise) -> AssignedExerciseResponse:
    return AssignedExerciseResponse(
        id=assignment.id,
        assigned_at=assignment.assigned_at,
        notes=assignment.notes,
        exercise=to_exercise_response(assignment.exercise),
    )


class AssignedStudentResponse(StudentRef):
    assigned_at: UtcDatetime
    notes: Optional[str] = None


def to_assigned_student_response(assignment: StudentExercise) -> AssignedStudentResponse:
    student = assignment.student
    return AssignedStudentResponse(
        id=student.id,
        name=student.name,
        email=student.email,
        assigned_at=assignment.assigned_at,
        notes=assignment.notes,
    )


class ScheduledClassResponse(CamelModel):
    id: str
    student_id: str
    title: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    payment_status: str
    notes: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
    student: Optional[StudentRef] = None


def to_scheduled_class_response(scheduled_class: ScheduledClass, include_student: bool = True) -> ScheduledClassResponse:
    student = scheduled_class.student if include_student else None
    return ScheduledClassResponse(
        id=scheduled_class.id,
        student_id=scheduled_class.student_id,
        title=scheduled_class.title,
        start_time=scheduled_class.start_time,
        end_time=scheduled_class.end_time,
        payment_status=scheduled_class.payment_status,
        notes=scheduled_class.notes,
        created_at=scheduled_class.created_at,
        updated_at=scheduled_class.updated_at,
        student=to_student_ref(student) if student is not None else None,
    )


class PricingItem(CamelModel):
    name: str
    price: str
    description: Optional[str] = None


class ContactInfo(CamelModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class SiteSettingsResponse(CamelModel):
    id: int
    teacher_name: Optional[str] = None
    teacher_bio: Optional[str] = None
    teacher_photo: Optional[str] = None
    pricing: Optional[list[PricingItem]] = None
    contact_info: Optional[ContactInfo] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


def to_site_settings_response(settings: SiteSettings) -> SiteSettingsResponse:
    return SiteSettingsResponse(
        id=settings.id,
        teacher_name=settings.teacher_name,
        teacher_bio=settings.teacher_bio,
        teacher_photo=settings.teacher_photo,
        pricing=[PricingItem.model_validate(item) for item in settings.pricing] if settings.pricing else None,
        contact_info=ContactInfo.model_validate(settings.contact_info) if settings.contact_info else None,
        created_at=settings.created_at,
        updated_at=settings.updated_at,
    )


class ReconcileResponse(SuccessResponse):
    added: int
    removed: int
