"""Error types for the analysis orchestrator."""


class AnalysisApiError(Exception):
    """Analysis endpoint call failure.

    Attributes:
        status_code: HTTP status code, 0 for transport or decoding errors.
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code
