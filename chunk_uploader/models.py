"""
Module containing data models for the chunked uploader.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Dict, Mapping, Optional, Union

from .exceptions import ConfigurationError

BYTES_PER_MB = 1000 * 1000

FileLike = Union[str, os.PathLike, BinaryIO]

# Original option names, accepted by UploadConfig.from_mapping
_OPTION_ALIASES = {
    "postParams": "post_params",
    "chunkSize": "chunk_size",
    "delayBeforeRetry": "delay_before_retry",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_file_object(value: Any) -> bool:
    if not all(hasattr(value, name) for name in ("read", "seek", "tell")):
        return False
    readable = getattr(value, "readable", None)
    return readable is None or readable()


@dataclass
class UploadConfig:
    """Options of one upload session, validated on creation."""
    endpoint: str
    file: FileLike
    headers: Optional[Mapping[str, Any]] = None
    post_params: Optional[Mapping[str, Any]] = None
    chunk_size: float = 10
    retries: int = 5
    delay_before_retry: float = 5

    def __post_init__(self):
        """Validate the upload options."""
        if not isinstance(self.endpoint, str) or not self.endpoint:
            raise ConfigurationError("endpoint must be defined")
        if isinstance(self.file, (str, os.PathLike)):
            if not Path(self.file).is_file() or not os.access(self.file, os.R_OK):
                raise ConfigurationError(f"file {self.file} is not a readable file")
        elif not _is_file_object(self.file):
            raise ConfigurationError("file must be a path or a readable, seekable binary file object")
        if self.headers is not None and not isinstance(self.headers, Mapping):
            raise ConfigurationError("headers must be None or a mapping")
        if self.post_params is not None and not isinstance(self.post_params, Mapping):
            raise ConfigurationError("post_params must be None or a mapping")
        if not _is_number(self.chunk_size) or self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be a positive number")
        if self.chunk_bytes < 1:
            raise ConfigurationError("chunk_size must be at least one byte")
        if not isinstance(self.retries, int) or isinstance(self.retries, bool) or self.retries <= 0:
            raise ConfigurationError("retries must be a positive integer")
        if not _is_number(self.delay_before_retry) or self.delay_before_retry <= 0:
            raise ConfigurationError("delay_before_retry must be a positive number")

    @property
    def chunk_bytes(self) -> int:
        return int(round(self.chunk_size * BYTES_PER_MB))

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "UploadConfig":
        """Build a config from a mapping using snake_case or camelCase keys.

        Args:
            options: Option names and values, e.g. loaded from a JSON file

        Returns:
            Validated UploadConfig
        """
        known = set(cls.__dataclass_fields__)
        kwargs = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"unknown upload option: {key}")
            if value is not None:
                kwargs[name] = value
        if "endpoint" not in kwargs or "file" not in kwargs:
            raise ConfigurationError("endpoint and file are required")
        return cls(**kwargs)


class UploadState(str, Enum):
    """Lifecycle states of an upload session."""
    IDLE = "idle"
    SENDING = "sending"
    RETRYING = "retrying"
    PAUSED = "paused"
    OFFLINE = "offline"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.FINISHED, UploadState.FAILED)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass
class Outcome:
    """Classified result of transmitting one chunk."""
    kind: OutcomeKind
    status_code: Optional[int] = None
    response: Any = None
    error: Optional[BaseException] = None


@dataclass
class Chunk:
    """One byte range of the source file, read just before it is sent."""
    index: int
    start: int
    end: int
    payload: bytes = field(default=b"", repr=False)

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class RetryContext:
    """Payload of a retry notification."""
    chunk: int
    attempts_used: int
    retries_left: int
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "chunk": self.chunk, "retriesLeft": self.retries_left}
