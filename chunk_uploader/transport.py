"""
Module for sending chunks over HTTP and classifying the responses.
"""
import logging
from typing import Any, Mapping, Optional

import requests

from .exceptions import TransientTransferError
from .models import Chunk, Outcome, OutcomeKind

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({200, 201, 204})
RETRYABLE_STATUSES = frozenset({408, 502, 503, 504})


def is_retryable_status(status_code: int) -> bool:
    """Check if an HTTP status should trigger a retry.

    Args:
        status_code: The response status

    Returns:
        True for timeouts and gateway errors, False otherwise
    """
    return status_code in RETRYABLE_STATUSES


def classify_response(response: Any) -> Outcome:
    """Classify a chunk response as success, transient or fatal.

    Args:
        response: Object with a ``status_code`` attribute

    Returns:
        Outcome carrying the response
    """
    status = response.status_code
    if status in SUCCESS_STATUSES:
        kind = OutcomeKind.SUCCESS
    elif is_retryable_status(status):
        kind = OutcomeKind.TRANSIENT
    else:
        kind = OutcomeKind.FATAL
    return Outcome(kind=kind, status_code=status, response=response)


class RequestsTransport:
    """Posts chunks as multipart forms with a requests session."""

    def __init__(self, session: Optional[requests.Session] = None):
        """Initialize the transport.

        Args:
            session: Session to send with. A new one is created if omitted.
        """
        self.session = session or requests.Session()

    def send(self, endpoint: str, headers: Mapping[str, str], chunk: Chunk,
             post_params: Optional[Mapping[str, Any]] = None,
             filename: str = "blob") -> requests.Response:
        """POST one chunk.

        Args:
            endpoint: URL receiving the chunks
            headers: Complete header set of this request
            chunk: The chunk to send in the ``file`` field
            post_params: Extra form fields, only given for the last chunk
            filename: File name announced in the multipart part

        Returns:
            The response, with its body not yet read

        Raises:
            TransientTransferError: On connection-level failures
        """
        files = {'file': (filename, chunk.payload, 'application/octet-stream')}
        data = {key: str(value) for key, value in post_params.items()} if post_params else None

        try:
            response = self.session.post(endpoint, headers=dict(headers), files=files,
                                         data=data, stream=True, allow_redirects=False)
        except requests.RequestException as e:
            raise TransientTransferError(f"Error sending chunk {chunk.index} to {endpoint}: {e}") from e

        logger.debug(f"Chunk {chunk.index} answered with status {response.status_code}")
        return response

    def read_body(self, response: requests.Response) -> str:
        """Read the body of a response returned by send.

        Raises:
            TransientTransferError: If the connection drops while reading
        """
        try:
            return response.text
        except requests.RequestException as e:
            raise TransientTransferError(f"Error reading response body: {e}") from e
        finally:
            response.close()

    def release(self, response: requests.Response) -> None:
        """Give a response's connection back to the pool without reading it."""
        response.close()

    def close(self) -> None:
        self.session.close()
