"""Errors raised by the field client. Names match the server's error taxonomy."""


class BantayAniError(Exception):
    """Base class for every client error."""

    def __init__(self, message='', status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class AuthError(BantayAniError):
    """Not logged in, or the session token was rejected."""


class ForbiddenError(BantayAniError):
    """Logged in but the role does not allow the action."""


class NotFoundError(BantayAniError):
    pass


class ValidationError(BantayAniError):
    """A required field is missing or invalid."""


class UploadError(BantayAniError):
    """The server could not store the image."""


class NetworkError(BantayAniError):
    """The server could not be reached, or answered with a server error."""


STATUS_ERRORS = {
    400: ValidationError,
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
}

# detections/ answers 502 when the image could not be stored
UPLOAD_STATUS_ERRORS = {**STATUS_ERRORS, 502: UploadError}
