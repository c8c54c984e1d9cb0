import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import EmailStr, TypeAdapter, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, get_current_user, require_teacher
from backend.database import get_db
from backend.repositories import SiteSettingsRepository
from backend.routes.common import storage_failure
from backend.schemas import CamelModel, SiteSettingsResponse, is_valid_url, to_site_settings_response

router = APIRouter(tags=['settings'])

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


def _check_length(value: Optional[str], limit: int, message: str) -> Optional[str]:
    if value is not None and len(value) > limit:
        raise ValueError(message)
    return value


class PricingItemRequest(CamelModel):
    name: str
    price: str
    description: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required')
        return _check_length(normalized, 100, 'Name is too long')

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Price is required')
        return _check_length(normalized, 50, 'Price is too long')

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _check_length(value, 500, 'Description is too long')


class ContactInfoRequest(CamelModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == '':
            return value
        try:
            return _email_adapter.validate_python(value.strip())
        except ValidationError as exc:
            raise ValueError('Invalid email') from exc

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return _check_length(value, 50, 'Phone is too long')

    @field_validator('location')
    @classmethod
    def validate_location(cls, value: Optional[str]) -> Optional[str]:
        return _check_length(value, 200, 'Location is too long')


class UpdateSettingsRequest(CamelModel):
    teacher_name: Optional[str] = None
    teacher_bio: Optional[str] = None
    teacher_photo: Optional[str] = None
    pricing: Optional[list[PricingItemRequest]] = None
    contact_info: Optional[ContactInfoRequest] = None

    @field_validator('teacher_name')
    @classmethod
    def validate_teacher_name(cls, value: Optional[str]) -> Optional[str]:
        return _check_length(value, 100, 'Name is too long')

    @field_validator('teacher_bio')
    @classmethod
    def validate_teacher_bio(cls, value: Optional[str]) -> Optional[str]:
        return _check_length(value, 5000, 'Bio is too long')

    @field_validator('teacher_photo')
    @classmethod
    def validate_teacher_photo(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == '':
            return None
        if not is_valid_url(value):
            raise ValueError('Invalid photo URL')
        return value


def build_settings_changes(data: UpdateSettingsRequest) -> dict:
    """Column values for the fields the caller actually sent."""
    changes = {}
    if 'teacher_name' in data.model_fields_set:
        changes['teacher_name'] = data.teacher_name
    if 'teacher_bio' in data.model_fields_set:
        changes['teacher_bio'] = data.teacher_bio
    if 'teacher_photo' in data.model_fields_set:
        changes['teacher_photo'] = data.teacher_photo
    if 'pricing' in data.model_fields_set:
        changes['pricing'] = (
            [item.model_dump(exclude_none=True) for item in data.pricing]
            if data.pricing is not None
            else None
        )
    if 'contact_info' in data.model_fields_set:
        changes['contact_info'] = (
            data.contact_info.model_dump(exclude_none=True)
            if data.contact_info is not None
            else None
        )
    return changes


@router.get('', response_model=SiteSettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    try:
        settings = SiteSettingsRepository(db).get_or_create()
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch settings') from exc

    return to_site_settings_response(settings)


@router.put('', response_model=SiteSettingsResponse, status_code=status.HTTP_200_OK)
def update_settings(
    data: UpdateSettingsRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_teacher(current_user)

    try:
        repository = SiteSettingsRepository(db)
        settings = repository.get_or_create()
        settings = repository.update(settings, build_settings_changes(data))
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to update settings') from exc

    logger.info('Site settings updated by %s', current_user.id)
    return to_site_settings_response(settings)
