from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, get_current_user
from backend.database import get_db
from backend.repositories import UserRepository
from backend.routes.common import storage_failure
from backend.schemas import CamelModel

router = APIRouter(tags=['teacher'])


class TeacherProfileResponse(CamelModel):
    id: str
    name: Optional[str] = None
    bio: Optional[str] = None
    video_url: Optional[str] = None


@router.get('', response_model=TeacherProfileResponse)
def get_teacher_profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    del current_user

    try:
        teacher = UserRepository(db).get_teacher()
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, 'Failed to fetch teacher profile') from exc

    if teacher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Teacher not found')

    return TeacherProfileResponse(
        id=teacher.id,
        name=teacher.name,
        bio=teacher.bio or None,
        video_url=teacher.video_url or None,
    )
