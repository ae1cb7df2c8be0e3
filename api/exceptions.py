"""
Domain errors for the detection workflow.

Each one is a DRF ``APIException`` so services can raise them directly and
the default exception handler renders ``{"detail": ...}`` with the matching
status code.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class AuthError(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication credentials were not provided.'
    default_code = 'not_authenticated'


class ForbiddenError(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Forbidden - Admin access required'
    default_code = 'forbidden'


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Detection not found'
    default_code = 'not_found'


class ValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request'
    default_code = 'invalid'


class UploadError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Failed to upload image'
    default_code = 'upload_failed'


class InferenceError(APIException):
    """AI service failure. ``retry`` tells the caller whether trying again may help."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'AI analysis failed'
    default_code = 'inference_failed'

    def __init__(self, detail=None, code=None, status_code=None, retry=False):
        super().__init__(detail, code)
        if status_code is not None:
            self.status_code = status_code
        self.retry = retry
