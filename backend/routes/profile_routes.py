import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, get_current_user
from backend.auth.passwords import hash_password, verify_password
from backend.database import get_db
from backend.models.user import User
from backend.repositories import UserRepository
from backend.routes.auth_routes import MIN_PASSWORD_LENGTH
from backend.routes.common import storage_failure
from backend.schemas import CamelModel, MessageResponse, UtcDatetime, is_valid_url

router = APIRouter(tags=['profile'])

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_BIO_LENGTH = 2000
MAX_VIDEO_URL_LENGTH = 500


class ProfileResponse(CamelModel):
    id: str
    name: Optional[str] = None
    email: str
    bio: Optional[str] = None
    video_url: Optional[str] = None
    role: str
    created_at: UtcDatetime


def to_profile_response(user: User) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        bio=user.bio,
        video_url=user.video_url,
        role=user.role,
        created_at=user.created_at,
    )


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    video_url: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required')
        if len(normalized) > MAX_NAME_LENGTH:
            raise ValueError('Name is too long')
        return normalized

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > MAX_BIO_LENGTH:
            raise ValueError('Bio is too long')
        return value

    @field_validator('video_url')
    @classmethod
    def validate_video_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            # An empty string clears the stored video.
            return None
        if len(normalized) > MAX_VIDEO_URL_LENGTH:
            raise ValueError('URL is too long')
        if not is_valid_url(normalized):
            raise ValueError('Invalid URL')
        return normalized


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator('current_password')
    @classmethod
    def validate_current_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Current password is required')
        return value

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'New password must be at least {MIN_PASSWORD_LENGTH} characters')
        return value

    @field_validator('confirm_password')
    @classmethod
    def validate_confirm_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Please confirm your password')
        return value

    @model_validator(mode='after')
    def passwords_match(self) -> 'ChangePasswordRequest':
        if self.new_password != self.confirm_password:
            raise ValueError('Passwords do not match')
        return self


def _get_user_or_404(users: UserRepository, user_id: str) -> User:
    user = users.get(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return user


@router.get('', response_model=ProfileResponse)
def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = _get_user_or_404(UserRepository(db), current_user.id)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch profile') from exc

    return to_profile_response(user)


@router.put('', response_model=ProfileResponse)
def update_profile(
    data: UpdateProfileRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True)
    if 'name' in changes and changes['name'] is None:
        del changes['name']

    try:
        users = UserRepository(db)
        user = _get_user_or_404(users, current_user.id)
        user = users.update(user, changes)
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to update profile') from exc

    return to_profile_response(user)


@router.post('/password', response_model=MessageResponse)
def change_password(
    data: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        users = UserRepository(db)
        user = _get_user_or_404(users, current_user.id)

        if not verify_password(data.current_password, user.hashed_password):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Current password is incorrect')

        users.update(user, {'hashed_password': hash_password(data.new_password)})
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to change password') from exc

    logger.info('Password changed for user %s', current_user.id)
    return MessageResponse(message='Password updated successfully')
