"""
Module for deciding whether a failed chunk is retried.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from tenacity import RetryCallState, stop_after_attempt, wait_fixed

from .events import EventEmitter, UploadEvent
from .exceptions import RetriesExhausted
from .models import RetryContext

logger = logging.getLogger(__name__)


@dataclass
class RetryDecision:
    """A retry of the same chunk, due after ``delay`` seconds."""
    context: RetryContext
    delay: float


class RetryPolicy:
    """Fixed-delay retries against a budget shared by the whole session.

    The attempt counter is never reset when a chunk succeeds, so retries
    spent on one chunk are no longer available to the following ones.
    """

    def __init__(self, retries: int, delay: float, emitter: EventEmitter):
        """Initialize the retry policy.

        Args:
            retries: Number of retries allowed over the session's lifetime
            delay: Seconds to wait before each retry
            emitter: Receives the retry and exhaustion events
        """
        self.max_retries = retries
        self.stop = stop_after_attempt(retries + 1)
        self.wait = wait_fixed(delay)
        self.emitter = emitter
        # The session owns this state instead of a tenacity Retrying loop, so
        # the stop and wait strategies see one attempt counter for the whole
        # upload. It starts at zero; each failure bumps it before deciding.
        self._state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        self._state.attempt_number = 0

    @property
    def attempts(self) -> int:
        return self._state.attempt_number

    @property
    def retries_left(self) -> int:
        return max(0, self.max_retries - self.attempts)

    def on_failure(self, chunk: int) -> Optional[RetryDecision]:
        """Count a failure of a chunk and decide what happens next.

        Args:
            chunk: Index of the chunk that failed

        Returns:
            RetryDecision if the chunk should be sent again, None once the
            budget is exhausted
        """
        self._state.attempt_number += 1

        if self.stop(self._state):
            error = RetriesExhausted(chunk)
            logger.error(str(error))
            self.emitter.emit(UploadEvent.ERROR, error)
            return None

        context = RetryContext(
            chunk=chunk,
            attempts_used=self.attempts,
            retries_left=self.retries_left,
            message=f"An error occurred uploading chunk {chunk}. {self.retries_left} retries left",
        )
        delay = self.wait(self._state)
        logger.warning(f"{context.message}, retrying in {delay}s")
        self.emitter.emit(UploadEvent.FILE_RETRY, context)
        return RetryDecision(context=context, delay=delay)
