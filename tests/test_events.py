"""
Tests for the event emitter.
"""
from unittest.mock import Mock

import pytest

from chunk_uploader.events import EventEmitter, UploadEvent


def test_all_handlers_of_a_kind_are_called():
    emitter = EventEmitter()
    first, second = Mock(), Mock()
    emitter.subscribe(UploadEvent.PROGRESS, first)
    emitter.subscribe("progress", second)

    emitter.emit(UploadEvent.PROGRESS, 50)

    first.assert_called_once_with(50)
    second.assert_called_once_with(50)


def test_online_and_offline_handlers_take_no_payload():
    emitter = EventEmitter()
    handler = Mock()
    emitter.subscribe(UploadEvent.OFFLINE, handler)

    emitter.emit(UploadEvent.OFFLINE)

    handler.assert_called_once_with()


def test_failing_handler_does_not_stop_others():
    emitter = EventEmitter()
    broken = Mock(side_effect=RuntimeError("boom"))
    healthy = Mock()
    emitter.subscribe(UploadEvent.FINISH, broken)
    emitter.subscribe(UploadEvent.FINISH, healthy)

    emitter.emit(UploadEvent.FINISH, "body")

    healthy.assert_called_once_with("body")


def test_unsubscribe():
    emitter = EventEmitter()
    handler = Mock()
    emitter.subscribe(UploadEvent.ERROR, handler)
    emitter.unsubscribe(UploadEvent.ERROR, handler)

    emitter.emit(UploadEvent.ERROR, "failure")

    handler.assert_not_called()


def test_rejects_unknown_kind_and_non_callable():
    emitter = EventEmitter()

    with pytest.raises(ValueError):
        emitter.subscribe("complete", Mock())
    with pytest.raises(TypeError):
        emitter.subscribe(UploadEvent.PROGRESS, "not callable")


def test_late_handler_receives_last_terminal_and_progress_payloads():
    """Test that handlers subscribing after the fact still see how the upload ended."""
    emitter = EventEmitter()
    emitter.emit(UploadEvent.PROGRESS, 33)
    emitter.emit(UploadEvent.PROGRESS, 67)
    emitter.emit(UploadEvent.ERROR, "No more retries")
    progress, errors = Mock(), Mock()

    emitter.subscribe(UploadEvent.PROGRESS, progress)
    emitter.subscribe(UploadEvent.ERROR, errors)

    progress.assert_called_once_with(67)
    errors.assert_called_once_with("No more retries")


def test_retry_and_connectivity_events_are_not_replayed():
    emitter = EventEmitter()
    emitter.emit(UploadEvent.FILE_RETRY, "retrying")
    emitter.emit(UploadEvent.OFFLINE)
    retry, offline = Mock(), Mock()

    emitter.subscribe(UploadEvent.FILE_RETRY, retry)
    emitter.subscribe(UploadEvent.OFFLINE, offline)

    retry.assert_not_called()
    offline.assert_not_called()


def test_handler_subscribed_before_emit_is_called_once():
    emitter = EventEmitter()
    handler = Mock()
    emitter.subscribe(UploadEvent.FINISH, handler)

    emitter.emit(UploadEvent.FINISH, "body")

    handler.assert_called_once_with("body")
