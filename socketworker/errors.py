"""Exceptions raised by the socket worker package."""


class SocketWorkerError(Exception):
    """Base class for socket worker errors."""


class CodecError(SocketWorkerError, ValueError):
    """Raised when a message cannot be encoded or decoded."""


class SocketInUseError(SocketWorkerError, OSError):
    """
    Raised when a reused socket path already has a live listener.

    Detecting the listener costs it one empty connection, which the other
    worker reports as a CodecError from its current accept() cycle.
    """
