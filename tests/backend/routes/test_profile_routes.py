import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.auth.passwords import hash_password, verify_password
from backend.routes.profile_routes import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    change_password,
    get_profile,
    update_profile,
)
from conftest import add_user, as_current_user


def test_get_profile_returns_current_user(studio_db, teacher) -> None:
    profile = get_profile(current_user=as_current_user(teacher), db=studio_db)

    assert profile.id == teacher.id
    assert profile.role == 'TEACHER'
    assert profile.video_url is None


def test_update_profile_request_treats_empty_video_url_as_clear() -> None:
    request = UpdateProfileRequest.model_validate({'videoUrl': '  '})

    assert 'video_url' in request.model_fields_set
    assert request.video_url is None


@pytest.mark.parametrize(
    ('payload', 'message'),
    [
        ({'name': '   '}, 'Name is required'),
        ({'bio': 'b' * 2001}, 'Bio is too long'),
        ({'videoUrl': 'youtube.com/watch'}, 'Invalid URL'),
        ({'videoUrl': 'https://example.com/' + 'v' * 500}, 'URL is too long'),
    ],
)
def test_update_profile_request_rejects_invalid_fields(payload: dict, message: str) -> None:
    with pytest.raises(ValidationError) as exception_info:
        UpdateProfileRequest.model_validate(payload)

    assert message in str(exception_info.value)


def test_update_profile_sets_and_clears_video(studio_db, teacher) -> None:
    current_user = as_current_user(teacher)

    updated = update_profile(
        data=UpdateProfileRequest.model_validate({'bio': 'Pianist', 'videoUrl': 'https://youtu.be/abc'}),
        current_user=current_user,
        db=studio_db,
    )
    assert (updated.bio, updated.video_url) == ('Pianist', 'https://youtu.be/abc')

    cleared = update_profile(
        data=UpdateProfileRequest.model_validate({'videoUrl': ''}),
        current_user=current_user,
        db=studio_db,
    )
    assert cleared.video_url is None
    assert cleared.bio == 'Pianist'
    assert cleared.name == 'Music Teacher'


def test_change_password_request_requires_matching_confirmation() -> None:
    with pytest.raises(ValidationError) as exception_info:
        ChangePasswordRequest.model_validate({
            'currentPassword': 'old-password',
            'newPassword': 'new-password',
            'confirmPassword': 'different-one',
        })

    assert 'Passwords do not match' in str(exception_info.value)


def test_change_password_rejects_wrong_current_password(studio_db) -> None:
    user = add_user(studio_db, email='ada@example.com', name='Ada', hashed_password=hash_password('old-password'))
    request = ChangePasswordRequest(
        current_password='not-it',
        new_password='new-password',
        confirm_password='new-password',
    )

    with pytest.raises(HTTPException) as exception_info:
        change_password(data=request, current_user=as_current_user(user), db=studio_db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Current password is incorrect'


def test_change_password_stores_new_hash(studio_db) -> None:
    user = add_user(studio_db, email='ada@example.com', name='Ada', hashed_password=hash_password('old-password'))
    request = ChangePasswordRequest(
        current_password='old-password',
        new_password='new-password',
        confirm_password='new-password',
    )

    response = change_password(data=request, current_user=as_current_user(user), db=studio_db)

    studio_db.refresh(user)
    assert response.message == 'Password updated successfully'
    assert verify_password('new-password', user.hashed_password)
    assert not verify_password('old-password', user.hashed_password)
