"""Socket worker: accepts one command per cycle over a Unix-domain socket.

Lifecycle published through the status record:

    STARTING -> READY -> (WAITING -> BUSY -> READY)* -> absent

The owning process calls accept() in a loop. The worker never shuts down on
its own: the shutdown hook calls close(), or the owner does when it exits.
"""

import logging
import socket
from pathlib import Path
from typing import Optional, Union

from socketworker.commands import (
    CommandHandler,
    CommandShutdown,
    SocketCommand,
    SocketResponse,
)
from socketworker.errors import CodecError, SocketInUseError
from socketworker.protocol import Codec, JsonCodec
from socketworker.status import SocketWorkerStatus, StatusFile
from socketworker.transport import SocketEndpoint, SocketHandle

logger = logging.getLogger(__name__)


class SocketWorker:
    """
    Serves commands on a Unix-domain socket, one connection per accept() call.

    Construction publishes STARTING, binds and listens, then publishes READY.
    Any failure on the way is propagated after the socket is closed and the
    socket file and status record it created are removed.
    """

    def __init__(
        self,
        socket_path: Union[str, Path],
        status_path: Union[str, Path],
        handler: CommandHandler,
        shutdown: Optional[CommandShutdown] = None,
        codec: Optional[Codec] = None,
        reuse_socket_file: bool = False,
        socket_family: int = socket.AF_UNIX,
        socket_type: int = socket.SOCK_STREAM,
        socket_protocol: int = 0,
    ):
        """
        Args:
            socket_path: Path of the Unix socket file
            status_path: Path of the status record
            handler: Called with each command, returns the response
            shutdown: Optional hook called after each response is sent
            codec: Message codec (default: JsonCodec)
            reuse_socket_file: Keep the socket path on shutdown and refuse to
                take over a path that still has a live listener
            socket_family: Address family for the socket
            socket_type: Socket type (SOCK_STREAM or SOCK_SEQPACKET)
            socket_protocol: Protocol number within the family
        """
        self.handler = handler
        self.shutdown_hook = shutdown
        self.codec = codec or JsonCodec()
        self.reuse_socket_file = reuse_socket_file

        self.status_file = StatusFile(status_path)
        self.status_file.set(SocketWorkerStatus.STARTING)

        self.endpoint = SocketEndpoint(
            socket_path, socket_family, socket_type, socket_protocol
        )
        self._handle: Optional[SocketHandle] = None
        self._bound = False
        self._closed = False

        try:
            self._handle = self.endpoint.open()
            self._bind()
            self._handle.listen()
        except BaseException:
            if self._handle is not None:
                self._handle.close()
            if self._bound:
                self.endpoint.remove()
            self.status_file.remove()
            raise

        self.status_file.set(SocketWorkerStatus.READY)
        logger.info(f"Worker listening on {self.endpoint.path}")

    def _bind(self) -> None:
        """
        Bind to the endpoint path, clearing an existing file first.

        With reuse_socket_file the path is checked for a live listener by
        connecting to it. That connection reaches the other worker as an empty
        request, so its current accept() cycle fails with CodecError.
        """
        if self.endpoint.exists():
            if not self.reuse_socket_file:
                logger.info(f"Removing existing socket file {self.endpoint.path}")
                self.endpoint.remove()
            elif self.endpoint.is_live():
                raise SocketInUseError(
                    f"Socket {self.endpoint.path} is in use by another process"
                )
            else:
                logger.info(f"Rebinding stale socket file {self.endpoint.path}")
                self.endpoint.remove()

        self.endpoint.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle.bind()
        self._bound = True

    def get_status(self) -> Optional[SocketWorkerStatus]:
        """Current published status, or None once the record is gone."""
        return self.status_file.get()

    def accept(self) -> None:
        """
        Serve exactly one connection.

        Publishes WAITING, blocks for a connection, publishes BUSY, decodes
        the command, runs the handler, writes the response and closes the
        connection. The shutdown hook (if any) runs next, then READY is
        published.

        Raises:
            CodecError: If the request is missing or malformed
            RuntimeError: If the worker has been shut down
        """
        if self._closed:
            raise RuntimeError("Worker has been shut down")

        self._set_status(SocketWorkerStatus.WAITING)

        connection = self._handle.accept()

        self._set_status(SocketWorkerStatus.BUSY)

        try:
            try:
                data = connection.read()
                if data is None:
                    raise CodecError("Connection closed before a command was received")

                command = self.codec.decode(data)
                if not isinstance(command, SocketCommand):
                    raise CodecError(
                        f"Expected a command, got {type(command).__name__}"
                    )

                logger.debug(f"Handling command '{command.name}' (id={command.id})")
                response = self.handler(command)
                if not isinstance(response, SocketResponse):
                    raise TypeError(
                        f"Handler returned {type(response).__name__}, expected SocketResponse"
                    )

                connection.write(self.codec.encode(response))
            finally:
                connection.close()
        except BaseException:
            self._set_status(SocketWorkerStatus.READY)
            raise

        if self.shutdown_hook is not None:
            self.shutdown_hook(command, response, self.close)

        # The hook may have removed the record; the write is then a no-op.
        self._set_status(SocketWorkerStatus.READY)

    def _set_status(self, status: SocketWorkerStatus) -> None:
        if self.status_file.exists():
            self.status_file.set(status)

    def close(self) -> None:
        """
        Shut the worker down: remove the status record, close the listening
        socket and, unless reuse_socket_file is set, remove the socket file.

        This is the callback handed to the shutdown hook. Owners may also call
        it when the serving process exits. Calling it twice is harmless.
        """
        if self._closed:
            return
        self._closed = True

        logger.info(f"Shutting down worker on {self.endpoint.path}")
        self.status_file.remove()
        self._handle.close()

        if not self.reuse_socket_file:
            self.endpoint.remove()
