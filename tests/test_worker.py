"""
Tests for worker.py - accept/execute cycle and lifecycle status.

Each test runs the worker's accept() loop in a background thread and talks to
it over a real Unix socket in a temporary directory.
"""

import shutil
import socket
import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest.mock import patch

from socketworker.commands import SocketCommand, SocketResponse
from socketworker.dispatcher import SocketDispatcher
from socketworker.errors import CodecError, SocketInUseError
from socketworker.handlers import echo_handler, shutdown_on
from socketworker.status import SocketWorkerStatus, StatusFile
from socketworker.transport import HEADER, SocketEndpoint, SocketHandle
from socketworker.worker import SocketWorker


def wait_for_status(status_file, expected, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if status_file.get() is expected:
            return True
        time.sleep(0.005)
    return False


class WorkerTestCase(unittest.TestCase):
    """Shared fixtures: temp paths and a helper to serve cycles in a thread."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.socket_path = Path(self.temp_dir) / "worker.sock"
        self.status_path = Path(self.temp_dir) / "worker.status"
        self.errors = []
        self.threads = []

    def tearDown(self):
        for thread in self.threads:
            thread.join(timeout=5.0)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_worker(self, **kwargs):
        kwargs.setdefault("handler", echo_handler)
        return SocketWorker(self.socket_path, self.status_path, **kwargs)

    def serve(self, worker, cycles=1):
        def loop():
            for _ in range(cycles):
                try:
                    worker.accept()
                except Exception as e:
                    self.errors.append(e)

        thread = threading.Thread(target=loop, daemon=True)
        thread.start()
        self.threads.append(thread)
        return thread

    def dispatcher(self):
        return SocketDispatcher(self.socket_path, self.status_path)


class TestWorkerConstruction(WorkerTestCase):

    def test_construction_publishes_ready(self):
        worker = self.make_worker()
        self.assertEqual(worker.get_status(), SocketWorkerStatus.READY)
        self.assertTrue(self.socket_path.exists())

    def test_starting_is_published_before_socket_is_opened(self):
        seen = []
        original_open = SocketEndpoint.open

        def spy_open(endpoint):
            seen.append(StatusFile(self.status_path).get())
            return original_open(endpoint)

        with patch.object(SocketEndpoint, "open", spy_open):
            worker = self.make_worker()

        self.assertEqual(seen, [SocketWorkerStatus.STARTING])
        self.assertEqual(worker.get_status(), SocketWorkerStatus.READY)

    def test_stale_socket_file_is_replaced(self):
        stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        stale.bind(str(self.socket_path))
        stale.close()
        self.assertTrue(self.socket_path.exists())

        worker = self.make_worker()
        self.assertEqual(worker.get_status(), SocketWorkerStatus.READY)

        self.serve(worker)
        response = self.dispatcher().execute(SocketCommand("ping"))
        self.assertEqual(response, SocketResponse(status=True, data={"echo": {}}))

    def test_bind_failure_propagates_and_removes_status(self):
        self.socket_path = Path(self.temp_dir) / ("s" * 200)

        with self.assertRaises(OSError):
            self.make_worker()

        self.assertFalse(self.status_path.exists())

    def test_listen_failure_removes_socket_file_and_status(self):
        with patch.object(SocketHandle, "listen", side_effect=OSError("listen failed")):
            with self.assertRaises(OSError):
                self.make_worker()

        self.assertFalse(self.socket_path.exists())
        self.assertFalse(self.status_path.exists())

    def test_reuse_refuses_live_socket(self):
        owner = self.make_worker()
        other_status = Path(self.temp_dir) / "other.status"

        with self.assertRaises(SocketInUseError):
            SocketWorker(
                self.socket_path,
                other_status,
                handler=echo_handler,
                reuse_socket_file=True,
            )

        self.assertFalse(other_status.exists())
        self.assertEqual(owner.get_status(), SocketWorkerStatus.READY)
        self.assertTrue(self.socket_path.exists())

        # The liveness check reaches the owner as an empty request
        self.serve(owner)
        self.threads[0].join(timeout=5.0)
        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], CodecError)
        self.assertEqual(owner.get_status(), SocketWorkerStatus.READY)

    def test_reuse_rebinds_stale_socket(self):
        worker = self.make_worker(shutdown=shutdown_on("stop"), reuse_socket_file=True)
        self.serve(worker)
        self.dispatcher().execute(SocketCommand("stop"))
        self.threads[0].join(timeout=5.0)

        # Path survives shutdown when reuse is set
        self.assertTrue(self.socket_path.exists())
        self.assertIsNone(StatusFile(self.status_path).get())

        again = self.make_worker(reuse_socket_file=True)
        self.assertEqual(again.get_status(), SocketWorkerStatus.READY)


class TestWorkerAccept(WorkerTestCase):

    def test_ping_echoes_arguments(self):
        worker = self.make_worker()
        self.serve(worker)

        response = self.dispatcher().execute(SocketCommand(name="ping", arguments={"x": 1}))

        self.assertEqual(response, SocketResponse(status=True, data={"echo": {"x": 1}}))

    def test_response_id_is_echoed(self):
        worker = self.make_worker()
        self.serve(worker)

        response = self.dispatcher().execute(SocketCommand("ping", {}, id="req-7"))

        self.assertEqual(response.id, "req-7")

    def test_status_sequence_during_cycle(self):
        observer = StatusFile(self.status_path)
        seen_in_handler = []

        def handler(command):
            seen_in_handler.append(observer.get())
            return SocketResponse(True)

        worker = self.make_worker(handler=handler)
        self.assertEqual(observer.get(), SocketWorkerStatus.READY)

        thread = self.serve(worker)
        self.assertTrue(wait_for_status(observer, SocketWorkerStatus.WAITING))

        self.dispatcher().execute(SocketCommand("work"))
        thread.join(timeout=5.0)

        self.assertEqual(seen_in_handler, [SocketWorkerStatus.BUSY])
        self.assertEqual(observer.get(), SocketWorkerStatus.READY)
        self.assertEqual(self.errors, [])

    def test_hook_without_shutdown_keeps_worker_running(self):
        calls = []

        def hook(command, response, shutdown):
            calls.append((command.name, response.status))

        worker = self.make_worker(shutdown=hook)
        self.serve(worker, cycles=2)

        dispatcher = self.dispatcher()
        dispatcher.execute(SocketCommand("first"))
        dispatcher.execute(SocketCommand("second"))
        self.threads[0].join(timeout=5.0)

        self.assertEqual(calls, [("first", True), ("second", True)])
        self.assertEqual(worker.get_status(), SocketWorkerStatus.READY)

    def test_shutdown_removes_status_and_socket(self):
        worker = self.make_worker(shutdown=shutdown_on("stop"))
        self.serve(worker)

        response = self.dispatcher().execute(SocketCommand("stop"))
        self.threads[0].join(timeout=5.0)

        self.assertTrue(response.status)
        self.assertFalse(self.status_path.exists())
        self.assertFalse(self.socket_path.exists())
        self.assertIsNone(worker.get_status())
        self.assertEqual(self.errors, [])

        with self.assertRaises(RuntimeError):
            worker.accept()

    def test_handler_error_propagates_and_restores_ready(self):
        def handler(command):
            raise RuntimeError("handler failed")

        worker = self.make_worker(handler=handler)
        thread = self.serve(worker)

        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            client.connect(str(self.socket_path))
            client_handle = SocketHandle(client, self.socket_path)
            client_handle.write(b'{"type": "command", "name": "ping"}')
            thread.join(timeout=5.0)
            self.assertIsNone(client_handle.read())
        finally:
            client.close()

        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], RuntimeError)
        self.assertEqual(worker.get_status(), SocketWorkerStatus.READY)

    def test_handler_cannot_change_command_seen_by_hook(self):
        seen_by_hook = []

        def handler(command):
            try:
                command.arguments["x"] = 99
            except TypeError:
                pass
            return SocketResponse(True)

        def hook(command, response, shutdown):
            seen_by_hook.append(dict(command.arguments))

        worker = self.make_worker(handler=handler, shutdown=hook)
        self.serve(worker)
        self.dispatcher().execute(SocketCommand("ping", {"x": 1}))
        self.threads[0].join(timeout=5.0)

        self.assertEqual(seen_by_hook, [{"x": 1}])

    def test_malformed_request_aborts_cycle(self):
        worker = self.make_worker()
        thread = self.serve(worker)

        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            client.connect(str(self.socket_path))
            payload = b"not json"
            client.sendall(HEADER.pack(len(payload)) + payload)
            thread.join(timeout=5.0)
            self.assertEqual(client.recv(16), b"")
        finally:
            client.close()

        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], CodecError)
        self.assertEqual(worker.get_status(), SocketWorkerStatus.READY)

    def test_client_closing_without_command_raises(self):
        worker = self.make_worker()
        thread = self.serve(worker)

        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        client.connect(str(self.socket_path))
        client.close()
        thread.join(timeout=5.0)

        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], CodecError)


if __name__ == "__main__":
    unittest.main()
