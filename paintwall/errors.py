"""
Error types for the Paintwall server.

Each error carries the HTTP status the server answers with. FormatError is
never surfaced to clients; layout code recovers from it locally.
"""

from typing import Optional


class PaintwallError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PaintwallError):
    status_code = 400
    default_message = "Invalid request"


class AlreadyTrashedError(ValidationError):
    default_message = "Already in trash"


class InvalidPathError(PaintwallError):
    status_code = 400
    default_message = "Invalid path"


class Unauthorized(PaintwallError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(PaintwallError):
    status_code = 404
    default_message = "Not found"


class PayloadTooLargeError(PaintwallError):
    status_code = 413
    default_message = "Payload too large"


class ConfigurationError(PaintwallError):
    status_code = 500
    default_message = "Display configuration error"


class FormatError(PaintwallError):
    status_code = 500
    default_message = "Unreadable image header"


class CorruptRecordError(PaintwallError):
    status_code = 500
    default_message = "Stored record is unreadable"
