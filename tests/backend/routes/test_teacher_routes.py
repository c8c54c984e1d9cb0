import pytest
from fastapi import HTTPException

from backend.routes.teacher_routes import get_teacher_profile
from conftest import as_current_user


def test_get_teacher_profile_returns_public_fields(studio_db, teacher, students) -> None:
    teacher.bio = 'Classical piano since 1998'
    teacher.video_url = ''
    studio_db.commit()

    profile = get_teacher_profile(current_user=as_current_user(students[0]), db=studio_db)

    assert profile.id == teacher.id
    assert profile.name == 'Music Teacher'
    assert profile.bio == 'Classical piano since 1998'
    assert profile.video_url is None


def test_get_teacher_profile_returns_not_found_without_teacher(studio_db, students) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_teacher_profile(current_user=as_current_user(students[0]), db=studio_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Teacher not found'
