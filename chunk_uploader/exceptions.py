"""
Exceptions raised by the chunked uploader.
"""
from typing import Any, Optional


class UploadError(Exception):
    """Base class for all uploader errors."""


class ConfigurationError(UploadError, ValueError):
    """Raised at construction when the upload options are invalid."""


class TransientTransferError(UploadError):
    """A chunk could not be delivered but the failure may go away on retry.

    Attributes:
        status_code: HTTP status of the response, None for connection errors
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetriesExhausted(UploadError):
    """The session used up its retry budget."""

    def __init__(self, chunk: int):
        super().__init__(f"An error occurred uploading chunk {chunk}. No more retries, stopping upload")
        self.chunk = chunk


class FatalServerError(UploadError):
    """The server answered with a status that is neither success nor retryable."""

    def __init__(self, status_code: int, chunk: int, response: Any = None,
                 body: Optional[str] = None):
        super().__init__(f"Server rejected chunk {chunk} with status {status_code}")
        self.status_code = status_code
        self.chunk = chunk
        self.response = response
        self.body = body
