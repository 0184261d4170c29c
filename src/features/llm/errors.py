"""Domain-specific error types for the LLM module."""


class LlmAuthError(Exception):
    """Missing or rejected provider credentials."""


class LlmApiError(Exception):
    """Provider API call failure.

    Attributes:
        status_code: HTTP status code from the API response, 0 when the
            failure happened before a response was received.
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class LlmProcessingError(Exception):
    """Response parsing or processing failure."""
