"""Error types raised by the API layer."""


class RequestValidationError(Exception):
    """Request body is missing required fields or is malformed."""


class UnsupportedFileTypeError(Exception):
    """Uploaded file type cannot be converted to text."""
