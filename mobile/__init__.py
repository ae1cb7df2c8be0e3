"""Field client for the BantayAni API: farmer capture flow and reviewer queue."""
from .api_client import BantayAniClient
from .errors import (
    BantayAniError, AuthError, ForbiddenError, NotFoundError,
    ValidationError, UploadError, NetworkError,
)
from .session import AppSession

__all__ = [
    'BantayAniClient', 'AppSession',
    'BantayAniError', 'AuthError', 'ForbiddenError', 'NotFoundError',
    'ValidationError', 'UploadError', 'NetworkError',
]
