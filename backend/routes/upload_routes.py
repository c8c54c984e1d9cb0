import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from backend import storage
from backend.auth.dependencies import CurrentUser, get_current_user, require_teacher
from backend.core import config
from backend.schemas import CamelModel, SuccessResponse

router = APIRouter(tags=['upload'])

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_TYPES = {
    'audio/mpeg',
    'audio/wav',
    'audio/wave',
    'audio/x-wav',
    'audio/mp4',
    'audio/x-m4a',
    'audio/ogg',
}


class UploadResponse(CamelModel):
    url: str
    key: str
    size: int
    type: str


def validate_audio_upload(content_type: Optional[str], size: int) -> None:
    if content_type not in ALLOWED_AUDIO_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid file type. Allowed types: MP3, WAV, M4A, OGG',
        )

    if size > config.MAX_UPLOAD_SIZE_BYTES:
        max_megabytes = config.MAX_UPLOAD_SIZE_BYTES // (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'File too large. Maximum size is {max_megabytes}MB',
        )


@router.post('', response_model=UploadResponse)
def upload_audio(
    file: Optional[UploadFile] = File(default=None),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_teacher(current_user)

    if file is None or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='No file provided')

    # Read one byte past the limit so oversized files are rejected without buffering them whole.
    data = file.file.read(config.MAX_UPLOAD_SIZE_BYTES + 1)
    validate_audio_upload(file.content_type, len(data))

    key = storage.build_storage_key(file.filename)
    try:
        stored = storage.upload_audio(data, key)
    except Exception as exc:
        logger.exception('Error uploading file %s', key)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to upload file',
        ) from exc

    return UploadResponse(url=stored.url, key=stored.key, size=len(data), type=file.content_type)


@router.delete('', response_model=SuccessResponse)
def delete_upload(
    key: Optional[str] = Query(default=None),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_teacher(current_user)

    if not key or not key.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='No key provided')

    try:
        storage.delete_audio(key.strip())
    except Exception as exc:
        logger.exception('Error deleting file %s', key)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to delete file',
        ) from exc

    return SuccessResponse()
