"""Error taxonomy shared by the pipelines and the HTTP layer.

Each error carries the HTTP status it maps to and a stable, caller-facing
``message``. ``detail`` holds the internal diagnostic text; it is logged but only
rendered to callers where the error type says so (``expose_detail``).
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    message = "Internal Server Error"
    expose_detail = False

    def __init__(self, detail: Optional[str] = None, *, message: Optional[str] = None):
        super().__init__(detail or message or self.message)
        self.detail = detail
        if message:
            self.message = message


class ValidationError(AppError):
    status_code = 400
    message = "Please check your inputs"
    expose_detail = True


class AuthenticationError(AppError):
    status_code = 401
    message = "Authentication required"


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"


class InvalidInputKind(AppError):
    status_code = 400
    message = "Only image files are allowed"
    expose_detail = True


class PayloadTooLarge(InvalidInputKind):
    status_code = 413
    message = "Image exceeds the maximum upload size"


class ProcessingFailure(AppError):
    message = "Failed to process image"
    expose_detail = True


class StorageUploadFailure(AppError):
    message = "Failed to upload image"
    expose_detail = True


class RecordCreationFailure(AppError):
    message = "Failed to save record"
    expose_detail = True


class GenerationFailure(AppError):
    message = "Failed to process message"


class GenerationTimeout(GenerationFailure):
    pass
