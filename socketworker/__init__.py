"""Single-connection command execution over a Unix-domain socket.

Architecture:
- SocketWorker: listens on a socket, runs one command per accept() call
- SocketDispatcher: connects, sends a command, returns the response
- StatusFile: cross-process status record (STARTING/READY/WAITING/BUSY)
- Codec: JSON (default) or pickle payloads inside length-prefixed frames
"""

from socketworker.commands import (
    CommandHandler,
    CommandShutdown,
    SocketCommand,
    SocketResponse,
)
from socketworker.dispatcher import SocketDispatcher
from socketworker.errors import CodecError, SocketInUseError, SocketWorkerError
from socketworker.handlers import echo_handler, shutdown_on
from socketworker.protocol import Codec, JsonCodec, PickleCodec, get_codec
from socketworker.status import SocketWorkerStatus, StatusFile
from socketworker.transport import SocketEndpoint, SocketHandle
from socketworker.worker import SocketWorker

__all__ = [
    "CommandHandler",
    "CommandShutdown",
    "SocketCommand",
    "SocketResponse",
    "SocketDispatcher",
    "SocketWorker",
    "SocketWorkerStatus",
    "StatusFile",
    "SocketEndpoint",
    "SocketHandle",
    "Codec",
    "JsonCodec",
    "PickleCodec",
    "get_codec",
    "CodecError",
    "SocketInUseError",
    "SocketWorkerError",
    "echo_handler",
    "shutdown_on",
]
