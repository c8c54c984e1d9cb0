import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from backend import storage
from backend.core import config
from backend.routes import upload_routes
from backend.routes.upload_routes import delete_upload, upload_audio, validate_audio_upload
from conftest import as_current_user


def _upload_file(filename: str, content_type: str, data: bytes = b'ID3audio') -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({'content-type': content_type}),
    )


def test_validate_audio_upload_rejects_unsupported_type() -> None:
    with pytest.raises(HTTPException) as exception_info:
        validate_audio_upload('image/png', 10)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Invalid file type. Allowed types: MP3, WAV, M4A, OGG'


def test_validate_audio_upload_rejects_oversized_file() -> None:
    with pytest.raises(HTTPException) as exception_info:
        validate_audio_upload('audio/mpeg', config.MAX_UPLOAD_SIZE_BYTES + 1)

    assert exception_info.value.detail == 'File too large. Maximum size is 50MB'
    validate_audio_upload('audio/mpeg', config.MAX_UPLOAD_SIZE_BYTES)


def test_upload_audio_requires_file(teacher) -> None:
    with pytest.raises(HTTPException) as exception_info:
        upload_audio(file=None, current_user=as_current_user(teacher))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'No file provided'


def test_upload_audio_is_teacher_only(students) -> None:
    with pytest.raises(HTTPException) as exception_info:
        upload_audio(file=_upload_file('a.mp3', 'audio/mpeg'), current_user=as_current_user(students[0]))

    assert exception_info.value.status_code == 403


def test_upload_audio_stores_file_under_sanitized_key(monkeypatch, teacher) -> None:
    uploaded = {}

    def _fake_upload(data: bytes, key: str) -> storage.StoredFile:
        uploaded['data'] = data
        uploaded['key'] = key
        return storage.StoredFile(url=f'https://res.cloudinary.com/demo/video/upload/{key}', key=key)

    monkeypatch.setattr(upload_routes.storage, 'upload_audio', _fake_upload)

    response = upload_audio(
        file=_upload_file('my song (1).mp3', 'audio/mpeg'),
        current_user=as_current_user(teacher),
    )

    assert uploaded['data'] == b'ID3audio'
    assert uploaded['key'].startswith('exercises/')
    assert uploaded['key'].endswith('-my_song__1_.mp3')
    assert response.key == uploaded['key']
    assert response.size == len(b'ID3audio')
    assert response.type == 'audio/mpeg'


def test_upload_audio_maps_storage_failure_to_500(monkeypatch, teacher) -> None:
    def _failing_upload(data: bytes, key: str) -> storage.StoredFile:
        raise storage.StorageError('boom')

    monkeypatch.setattr(upload_routes.storage, 'upload_audio', _failing_upload)

    with pytest.raises(HTTPException) as exception_info:
        upload_audio(file=_upload_file('a.wav', 'audio/wav'), current_user=as_current_user(teacher))

    assert exception_info.value.status_code == 500
    assert exception_info.value.detail == 'Failed to upload file'


def test_delete_upload_requires_key(teacher) -> None:
    for key in (None, '   '):
        with pytest.raises(HTTPException) as exception_info:
            delete_upload(key=key, current_user=as_current_user(teacher))
        assert exception_info.value.status_code == 400
        assert exception_info.value.detail == 'No key provided'


def test_delete_upload_calls_storage(monkeypatch, teacher) -> None:
    deleted = []
    monkeypatch.setattr(upload_routes.storage, 'delete_audio', deleted.append)

    response = delete_upload(key=' exercises/1-a.mp3 ', current_user=as_current_user(teacher))

    assert response.success is True
    assert deleted == ['exercises/1-a.mp3']


def test_delete_upload_maps_storage_failure_to_500(monkeypatch, teacher) -> None:
    def _failing_delete(key: str) -> None:
        raise storage.StorageError('boom')

    monkeypatch.setattr(upload_routes.storage, 'delete_audio', _failing_delete)

    with pytest.raises(HTTPException) as exception_info:
        delete_upload(key='exercises/1-a.mp3', current_user=as_current_user(teacher))

    assert exception_info.value.status_code == 500
    assert exception_info.value.detail == 'Failed to delete file'
