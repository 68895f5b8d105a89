"""Error taxonomy shared by the pipeline and its collaborators."""


class FormateurError(Exception):
    """Base class for Formateur errors."""
    pass


class TransientServiceError(FormateurError):
    """Network, timeout, quota or 5xx failure of an external service.

    The only error kind that is ever retried.
    """

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message


class LLMUnavailableError(FormateurError):
    """The LLM client has no usable provider (missing key or package)."""
    pass


class RequestValidationError(FormateurError):
    """Caller-side contract error (missing question, malformed history)."""
    pass
