import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import EmailStr, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.dependencies import CurrentUser, get_current_user
from backend.auth.passwords import hash_password, verify_password
from backend.database import get_db
from backend.models.user import ROLE_STUDENT
from backend.repositories import UserRepository
from backend.schemas import CamelModel

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8
DUPLICATE_EMAIL_MESSAGE = 'An account with this email already exists'


def normalize_email(value: str) -> str:
    return value.strip().lower()


class RegisterRequest(CamelModel):
    """Self-registration and teacher-created students share this shape."""

    name: str
    email: EmailStr
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < MIN_NAME_LENGTH:
            raise ValueError(f'Name must be at least {MIN_NAME_LENGTH} characters')
        return normalized

    @field_validator('email', mode='before')
    @classmethod
    def validate_email(cls, value):
        if isinstance(value, str):
            return normalize_email(value)
        return value

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        return value


class RegisterResponse(CamelModel):
    message: str
    user_id: str


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Email is required')
        return normalized


class IdentityResponse(CamelModel):
    id: str
    email: str
    role: str


class LoginResponse(CamelModel):
    access_token: str
    token_type: str = 'bearer'
    user: IdentityResponse


@router.post('/register', response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    users = UserRepository(db)

    try:
        if users.get_by_email(data.email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_MESSAGE)

        user = users.create(
            email=data.email,
            hashed_password=hash_password(data.password),
            name=data.name,
            role=ROLE_STUDENT,
        )
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_MESSAGE) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Registration failed for %s', data.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Something went wrong',
        ) from exc

    logger.info('Registered student account %s', user.id)
    return RegisterResponse(message='Account created successfully', user_id=user.id)


@router.post('/login', response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = UserRepository(db).get_by_email(data.email)
    except SQLAlchemyError as exc:
        logger.exception('Login lookup failed')
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Something went wrong',
        ) from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid email or password')

    token = jwt_handler.create_access_token(subject=user.id, role=user.role)
    return LoginResponse(
        access_token=token,
        user=IdentityResponse(id=user.id, email=user.email, role=user.role),
    )


@router.get('/me', response_model=IdentityResponse)
def me(current_user: CurrentUser = Depends(get_current_user)):
    return IdentityResponse(id=current_user.id, email=current_user.email, role=current_user.role)
