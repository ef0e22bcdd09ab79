from .connectivity import ConnectivityMonitor, ManualConnectivityMonitor, PollingConnectivityMonitor
from .events import UploadEvent
from .exceptions import (
    ConfigurationError,
    FatalServerError,
    RetriesExhausted,
    TransientTransferError,
    UploadError,
)
from .models import RetryContext, UploadConfig, UploadState
from .planner import ChunkPlanner
from .uploader import ChunkedUploader

__version__ = "0.1.0"

__all__ = [
    "ChunkedUploader",
    "ChunkPlanner",
    "UploadConfig",
    "UploadEvent",
    "UploadState",
    "RetryContext",
    "ConnectivityMonitor",
    "ManualConnectivityMonitor",
    "PollingConnectivityMonitor",
    "UploadError",
    "ConfigurationError",
    "TransientTransferError",
    "RetriesExhausted",
    "FatalServerError",
]
