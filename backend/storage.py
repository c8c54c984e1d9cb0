"""Audio file storage on Cloudinary."""

import logging
import os
import re
import time
from dataclasses import dataclass

import cloudinary
import cloudinary.uploader

from backend.core import config

logger = logging.getLogger(__name__)

# Cloudinary files audio under the "video" resource type.
AUDIO_RESOURCE_TYPE = 'video'

_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9.-]')


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredFile:
    url: str
    key: str


def configure() -> None:
    if config.CLOUDINARY_CLOUD_NAME and config.CLOUDINARY_API_KEY and config.CLOUDINARY_API_SECRET:
        cloudinary.config(
            cloud_name=config.CLOUDINARY_CLOUD_NAME,
            api_key=config.CLOUDINARY_API_KEY,
            api_secret=config.CLOUDINARY_API_SECRET,
            secure=True,
        )
    elif config.CLOUDINARY_URL:
        # The SDK reads CLOUDINARY_URL from the environment itself.
        cloudinary.config(secure=True)
    else:
        raise StorageError('Cloudinary credentials are not configured.')


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub('_', os.path.basename(filename or 'upload'))


def build_storage_key(filename: str, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f'{config.UPLOAD_FOLDER}/{timestamp_ms}-{sanitize_filename(filename)}'


def upload_audio(data: bytes, key: str) -> StoredFile:
    configure()
    result = cloudinary.uploader.upload(
        data,
        public_id=key,
        resource_type=AUDIO_RESOURCE_TYPE,
        overwrite=False,
    )
    url = (result or {}).get('secure_url')
    if not url:
        raise StorageError(f'Cloudinary upload returned no URL for {key}.')

    logger.info('Uploaded audio file %s', key)
    return StoredFile(url=url, key=key)


def delete_audio(key: str) -> None:
    configure()
    result = cloudinary.uploader.destroy(key, resource_type=AUDIO_RESOURCE_TYPE, invalidate=True)
    outcome = (result or {}).get('result')
    if outcome not in {'ok', 'not found'}:
        raise StorageError(f'Cloudinary delete failed for {key}: {outcome}')

    logger.info('Deleted audio file %s (%s)', key, outcome)
