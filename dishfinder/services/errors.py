"""
Service-level errors, mapped to HTTP status codes by the API layer
"""


class ModerationError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ModerationError):
    status_code = 400


class NotFound(ModerationError):
    status_code = 404


class StorageFailure(ModerationError):
    """Persistence failed for every item in a batch"""
    status_code = 500
