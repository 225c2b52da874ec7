"""
Autofill exceptions
"""

from typing import Optional


class AutofillError(Exception):
    """Base exception for autofill_core"""
    pass


class ConfigurationError(AutofillError):
    """Missing or invalid credentials / settings"""
    pass


class RetrievalError(AutofillError):
    """Error talking to the answering service.

    ``retryable`` tells the retry layer whether another attempt may help.
    """

    retryable = False

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthenticationError(RetrievalError):
    """401/403 from the service"""
    pass


class RateLimitedError(RetrievalError):
    """429 from the service"""
    retryable = True


class ServiceUnavailableError(RetrievalError):
    """5xx from the service"""
    retryable = True


class RequestTimeoutError(RetrievalError):
    """Client-side timeout expired"""
    retryable = True


class TransportError(RetrievalError):
    """Connection could not be established or was dropped"""
    retryable = True


class RequestRejectedError(RetrievalError):
    """Any other 4xx"""
    pass


class InvalidModelOutputError(RetrievalError):
    """Model answered with something that is not a JSON object"""
    pass


class RetryExhaustedError(AutofillError):
    """All retry attempts have been exhausted"""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error
