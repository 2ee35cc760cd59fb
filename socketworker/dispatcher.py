"""Dispatcher: sends one command to a socket worker and returns its response.

Usage:
    dispatcher = SocketDispatcher(socket_path, status_path)
    response = dispatcher.execute(SocketCommand("ping", {"x": 1}))
    if response is None:
        # No worker, connection dropped, or worker busy (non-blocking)
        ...
"""

import logging
import socket
from pathlib import Path
from typing import Optional, Union

from socketworker.commands import SocketCommand, SocketResponse
from socketworker.errors import CodecError
from socketworker.protocol import Codec, JsonCodec
from socketworker.status import SocketWorkerStatus, StatusFile
from socketworker.transport import SocketEndpoint

logger = logging.getLogger(__name__)


class SocketDispatcher:
    """
    Client side of the worker protocol.

    Each execute() call opens its own connection, so one dispatcher can be
    reused for any number of sequential commands.
    """

    def __init__(
        self,
        socket_path: Union[str, Path],
        status_path: Union[str, Path],
        codec: Optional[Codec] = None,
        socket_family: int = socket.AF_UNIX,
        socket_type: int = socket.SOCK_STREAM,
        socket_protocol: int = 0,
    ):
        self.codec = codec or JsonCodec()
        self.status_file = StatusFile(status_path)
        self.endpoint = SocketEndpoint(
            socket_path, socket_family, socket_type, socket_protocol
        )

    def get_status(self) -> Optional[SocketWorkerStatus]:
        """Worker status as last published, or None if there is no record."""
        return self.status_file.get()

    def execute(
        self, command: SocketCommand, blocking: bool = True
    ) -> Optional[SocketResponse]:
        """
        Send a command and wait for the response.

        Args:
            command: Command to execute
            blocking: If False, give up immediately unless the worker is
                currently WAITING for a connection

        Returns:
            The worker's response, or None if the worker was not waiting
            (non-blocking), could not be reached, or dropped the connection
            without replying

        Raises:
            CodecError: If the worker's reply cannot be decoded
        """
        if not blocking:
            status = self.get_status()
            if status is not SocketWorkerStatus.WAITING:
                logger.debug(
                    f"Worker not waiting (status={status.value if status else None}), "
                    f"skipping '{command.name}'"
                )
                return None

        handle = self.endpoint.open()
        try:
            if not handle.connect():
                return None

            payload = self.codec.encode(command)
            try:
                handle.write(payload)
                data = handle.read()
            except OSError as e:
                logger.debug(f"Connection dropped while executing '{command.name}': {e}")
                return None

            if data is None:
                logger.debug(f"Worker closed the connection without replying to '{command.name}'")
                return None

            response = self.codec.decode(data)
            if not isinstance(response, SocketResponse):
                raise CodecError(f"Expected a response, got {type(response).__name__}")
            return response
        finally:
            handle.close()
