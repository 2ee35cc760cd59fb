"""Unix-domain socket endpoint and blocking connection handles.

Framing for SOCK_STREAM sockets: each message is a 4-byte big-endian length
header followed by the payload. Packet sockets (SOCK_SEQPACKET) carry one
message per packet and need no header. No call here has a timeout.
"""

import logging
import os
import socket
import struct
import sys
from pathlib import Path
from typing import Optional, Union

from socketworker.errors import CodecError

logger = logging.getLogger(__name__)

HEADER = struct.Struct(">I")
MAX_MESSAGE_SIZE = 64 * 1024 * 1024
RECV_CHUNK = 65536
PACKET_BUFFER = 1024 * 1024

_PEEK_TRUNC = (
    socket.MSG_PEEK | socket.MSG_TRUNC if sys.platform.startswith("linux") else None
)


class SocketHandle:
    """A single open socket: listening, accepted, or client side."""

    def __init__(self, sock: socket.socket, path: Path):
        self.sock = sock
        self.path = path
        self._framed = sock.type == socket.SOCK_STREAM

    def bind(self) -> None:
        self.sock.bind(str(self.path))

    def listen(self, backlog: int = socket.SOMAXCONN) -> None:
        self.sock.listen(backlog)

    def accept(self) -> "SocketHandle":
        """Block until a peer connects and return a handle for that connection."""
        conn, _ = self.sock.accept()
        return SocketHandle(conn, self.path)

    def connect(self) -> bool:
        """
        Connect to the endpoint path.

        Returns:
            True on success, False if the connection could not be made
        """
        try:
            self.sock.connect(str(self.path))
        except OSError as e:
            logger.debug(f"Connect to {self.path} failed: {e}")
            return False
        return True

    def write(self, data: bytes) -> None:
        if len(data) > MAX_MESSAGE_SIZE:
            raise ValueError(
                f"Message of {len(data)} bytes exceeds limit of {MAX_MESSAGE_SIZE}"
            )
        if self._framed:
            self.sock.sendall(HEADER.pack(len(data)) + data)
        else:
            self.sock.send(data)

    def read(self) -> Optional[bytes]:
        """
        Read one complete message.

        Returns:
            The payload bytes, or None if the peer closed the connection
            before a complete message arrived

        Raises:
            CodecError: If the frame header announces an oversized message
        """
        if not self._framed:
            return self._recv_packet()

        header = self._recv_exact(HEADER.size)
        if header is None:
            return None

        (size,) = HEADER.unpack(header)
        if size > MAX_MESSAGE_SIZE:
            raise CodecError(f"Frame of {size} bytes exceeds limit of {MAX_MESSAGE_SIZE}")
        if size == 0:
            return b""
        return self._recv_exact(size)

    def _recv_packet(self) -> Optional[bytes]:
        if _PEEK_TRUNC is not None:
            # Linux reports the full packet length for a truncating peek
            size = self.sock.recv_into(bytearray(1), 1, _PEEK_TRUNC)
            if size > MAX_MESSAGE_SIZE:
                raise CodecError(
                    f"Packet of {size} bytes exceeds limit of {MAX_MESSAGE_SIZE}"
                )
        else:
            size = PACKET_BUFFER
        data = self.sock.recv(max(size, 1))
        return data or None

    def _recv_exact(self, size: int) -> Optional[bytes]:
        chunks = []
        remaining = size
        while remaining:
            chunk = self.sock.recv(min(remaining, RECV_CHUNK))
            if not chunk:
                if chunks:
                    logger.debug(
                        f"Connection closed after {size - remaining} of {size} bytes"
                    )
                return None
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def close(self) -> None:
        self.sock.close()


class SocketEndpoint:
    """
    Addressable Unix-domain socket: a filesystem path plus the selectors used
    to open sockets on it.
    """

    def __init__(
        self,
        path: Union[str, Path],
        family: int = socket.AF_UNIX,
        sock_type: int = socket.SOCK_STREAM,
        protocol: int = 0,
    ):
        self.path = Path(path)
        self.family = family
        self.sock_type = sock_type
        self.protocol = protocol

    def open(self) -> SocketHandle:
        return SocketHandle(
            socket.socket(self.family, self.sock_type, self.protocol), self.path
        )

    def exists(self) -> bool:
        # lexists: a socket file whose listener died still occupies the path
        return os.path.lexists(self.path)

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)

    def is_live(self) -> bool:
        """
        Return True if something is accepting connections on the path.

        The check opens and closes a real connection; a worker on the other
        end receives it as an empty request.
        """
        if not self.exists():
            return False
        handle = self.open()
        try:
            return handle.connect()
        finally:
            handle.close()
