# api/storage.py
"""
Persists detection photos to the media storage bucket.

Images arrive either as a multipart upload or as a base64 string (the web
and mobile clients send data URLs). Both are verified with Pillow before
they are written under ``detection-images/<user_id>/<uuid>.<ext>``.
"""
import base64
import binascii
import io
import logging
import re
import uuid

from PIL import Image, UnidentifiedImageError
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from .exceptions import UploadError

logger = logging.getLogger(__name__)

DETECTION_IMAGE_DIR = 'detection-images'

DATA_URL_PREFIX = re.compile(r'^data:image/[\w.+-]+;base64,')

# Pillow format name -> file extension
FORMAT_EXTENSIONS = {
    'JPEG': 'jpg',
    'PNG': 'png',
    'WEBP': 'webp',
    'GIF': 'gif',
    'BMP': 'bmp',
    'HEIF': 'heic',
}


def strip_data_url(image_base64):
    """Remove a ``data:image/...;base64,`` prefix if present."""
    return DATA_URL_PREFIX.sub('', image_base64.strip())


def decode_base64_image(image_base64):
    try:
        return base64.b64decode(strip_data_url(image_base64), validate=True)
    except (binascii.Error, ValueError) as e:
        raise UploadError(f'Image is not valid base64: {e}')


def detect_image_format(raw_bytes):
    """Return the file extension for ``raw_bytes``, raising UploadError if it is not an image."""
    if not raw_bytes:
        raise UploadError('Image payload is empty')
    try:
        with Image.open(io.BytesIO(raw_bytes)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UploadError(f'Uploaded file is not a valid image: {e}')
    return FORMAT_EXTENSIONS.get(image_format, 'jpg')


def read_upload(image):
    """Return the bytes of an uploaded file or base64 string."""
    if isinstance(image, str):
        return decode_base64_image(image)
    if isinstance(image, bytes):
        return image
    chunks = [chunk for chunk in image.chunks()] if hasattr(image, 'chunks') else [image.read()]
    return b''.join(chunks)


def save_detection_image(user, image):
    """
    Store ``image`` for ``user`` and return the storage name.

    Raises:
        UploadError: if the payload cannot be decoded, is not an image, or
            the storage backend refuses the write.
    """
    raw_bytes = read_upload(image)
    extension = detect_image_format(raw_bytes)
    name = f'{DETECTION_IMAGE_DIR}/{user.pk}/{uuid.uuid4()}.{extension}'

    try:
        stored_name = default_storage.save(name, ContentFile(raw_bytes))
    except OSError as e:
        logger.error("Storage upload error for user %s: %s", user.pk, e)
        raise UploadError('Failed to upload image')

    logger.info("Stored detection image %s (%d bytes)", stored_name, len(raw_bytes))
    return stored_name
