"""
Tests for the connectivity monitors.
"""
import socket
import time
from unittest.mock import Mock, patch

from chunk_uploader.connectivity import ManualConnectivityMonitor, PollingConnectivityMonitor


def test_manual_monitor_forwards_every_signal():
    monitor = ManualConnectivityMonitor()
    listener = Mock()
    monitor.register_listener(listener)

    monitor.set_offline()
    monitor.set_online()
    monitor.set_online()

    assert [c.args[0] for c in listener.call_args_list] == [False, True, True]


def test_unregistered_listener_is_not_called():
    monitor = ManualConnectivityMonitor()
    listener = Mock()
    monitor.register_listener(listener)
    monitor.unregister_listener(listener)

    monitor.set_offline()

    listener.assert_not_called()


def test_polling_monitor_signals_transitions_only():
    """Test that repeated probe results do not produce repeated signals."""
    monitor = PollingConnectivityMonitor("example.com")
    listener = Mock()
    monitor.register_listener(listener)

    with patch.object(monitor, "probe", side_effect=[True, False, False, True, True]):
        for _ in range(5):
            monitor.check()

    assert [c.args[0] for c in listener.call_args_list] == [False, True]


def test_probe_against_local_socket():
    server = socket.socket()
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    port = server.getsockname()[1]
    try:
        assert PollingConnectivityMonitor("127.0.0.1", port, timeout=1).probe()
    finally:
        server.close()

    assert not PollingConnectivityMonitor("127.0.0.1", port, timeout=1).probe()


def test_polling_thread_starts_and_stops():
    monitor = PollingConnectivityMonitor("example.com", interval=0.05)
    listener = Mock()
    monitor.register_listener(listener)

    with patch.object(monitor, "probe", return_value=False):
        monitor.start()
        time.sleep(0.2)
        monitor.stop()

    listener.assert_called_once_with(False)
    assert monitor._thread is None
