"""
Error Handler Module

This module defines the errors raised while publishing a build to papyrus and
the retry helper used for read-only Jenkins API calls.

Publish errors are raised inside BuildPublisher and converted into a failed
PublishOutcome at the publish() boundary. They are never retried: a single
failure fails the publish for that build.

Data Flow:
    HTTP call → [Transport / Status / Body check] → PublishError subclass →
    BuildPublisher.publish() → PublishOutcome.failure()

    Jenkins API call → retry_with_backoff() → [Attempt → Error → Wait → Retry] → Success/Failure

Module Dependencies:
    - time: For sleep between retries
    - logging: For error logging
    - typing: For type hints
"""

import time
import logging
from typing import Callable, Any, Optional, Type, Tuple

# Configure module logger
logger = logging.getLogger(__name__)


class ServerError:
    """Error strings the papyrus server is known to return in ``{"error": ...}`` bodies."""
    BUILD_ALREADY_EXISTS = "build already exists"
    BUILD_NOT_FOUND = "build not found"
    FILE_DOWNLOAD_ERROR = "couldn't access file"
    FILE_UPLOAD_ERROR = "couldn't upload file"
    INVALID_AUTH_TOKEN = "invalid auth token"
    INVALID_STATE_KEY = "invalid state key"
    PROJECT_NOT_FOUND = "project not found"
    VERSION_NOT_FOUND = "version not found"
    ENDPOINT_NOT_FOUND = "endpoint not found"


class PublishError(Exception):
    """
    Base class for failures of one publish phase.

    Attributes:
        message (str): Human readable reason, reported in the build output
        phase: PublishPhase the failure happened in
        status_code (Optional[int]): HTTP status code, when a response was received
    """

    def __init__(self, message: str, phase=None, status_code: Optional[int] = None):
        self.message = message
        self.phase = phase
        self.status_code = status_code
        super().__init__(message)


class NetworkError(PublishError):
    """Transport failure (unreachable host, connection reset, timeout)."""


class ProtocolError(PublishError):
    """Non-2xx response; carries the server provided message."""


class EmptyResponseError(PublishError):
    """2xx response without a body."""

    def __init__(self, phase=None, status_code: Optional[int] = None):
        super().__init__("empty response body", phase=phase, status_code=status_code)


class LocalFileMissingError(PublishError):
    """
    Artifact not found at the expected path.

    Attributes:
        path (str): Path that was checked
    """

    def __init__(self, path: str, phase=None):
        self.path = path
        super().__init__("file does not exist", phase=phase)


class DeserializationError(PublishError):
    """Response body does not match the expected schema."""


class RetryExhaustedError(Exception):
    """
    Raised when all retry attempts have been exhausted.

    Attributes:
        attempts (int): Number of attempts made
        last_exception (Exception): The last exception that was raised
    """

    def __init__(self, attempts: int, last_exception: Exception):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"All {attempts} attempts exhausted. Last error: {last_exception}"
        )


class ErrorHandler:
    """
    Retry helper with exponential backoff for idempotent reads.

    Only used for Jenkins REST reads. Calls to papyrus are not idempotent
    (a state key is single use) and never go through this class.

    Attributes:
        max_retries (int): Maximum number of retry attempts
        base_delay (float): Base delay in seconds between retries
        exponential (bool): Whether to use exponential backoff
    """

    def __init__(self, max_retries: int = 3, base_delay: float = 2.0, exponential: bool = True):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.exponential = exponential

    def retry_with_backoff(
        self,
        func: Callable,
        *args,
        exceptions: Tuple[Type[Exception], ...] = (Exception,),
        **kwargs
    ) -> Any:
        """
        Call ``func`` until it returns, retrying on the given exception types.

        Args:
            func (Callable): The function to execute
            *args: Positional arguments to pass to the function
            exceptions (Tuple[Type[Exception], ...]): Exception types that trigger a retry
            **kwargs: Keyword arguments to pass to the function

        Returns:
            Any: The return value of the successful call

        Raises:
            RetryExhaustedError: If every attempt failed
        """
        last_exception = None
        name = getattr(func, '__name__', repr(func))

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("Attempt %s/%s for %s", attempt + 1, self.max_retries + 1, name)
                return func(*args, **kwargs)
            except exceptions as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self._calculate_delay(attempt)
                    logger.warning(
                        "Attempt %d failed for %s: %s. Retrying in %.2f seconds...",
                        attempt + 1, name, e, delay
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "All %d attempts failed for %s. Last error: %s",
                        self.max_retries + 1, name, e
                    )

        raise RetryExhaustedError(self.max_retries + 1, last_exception)

    def _calculate_delay(self, attempt: int) -> float:
        """Delay before the next attempt: base_delay * 2^attempt, or base_delay when constant."""
        if self.exponential:
            return self.base_delay * (2 ** attempt)
        return self.base_delay
