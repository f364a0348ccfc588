from typing import Optional


class ChatError(Exception):
    """Base for errors surfaced to the caller of a relay operation."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChatError):
    status_code = 400
    default_message = "Validation error"


class EncryptionParameterError(ValidationError):
    default_message = "Invalid encryption parameters"


class NotFoundError(ChatError):
    status_code = 404
    default_message = "Not found"

    def __init__(self, message: Optional[str] = None, reason: str = "missing"):
        super().__init__(message)
        # "missing" or "expired"; only used for logging, callers always see the message
        self.reason = reason


class ForbiddenError(ChatError):
    status_code = 403
    default_message = "Forbidden"


class ConflictError(ChatError):
    status_code = 409
    default_message = "Conflict"


class DuplicateNameError(ConflictError):
    default_message = "A room with this name already exists"


class PayloadTooLargeError(ChatError):
    status_code = 413
    default_message = "Payload too large"
