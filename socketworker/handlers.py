"""Ready-made handler and shutdown hook for simple workers."""

from typing import Callable

from socketworker.commands import CommandShutdown, SocketCommand, SocketResponse


def echo_handler(command: SocketCommand) -> SocketResponse:
    """Answer every command with its own arguments under 'echo'."""
    return SocketResponse(status=True, data={"echo": command.arguments}, id=command.id)


def shutdown_on(*names: str) -> CommandShutdown:
    """
    Build a shutdown hook that stops the worker after any of the named commands.

    Args:
        names: Command names that trigger shutdown

    Returns:
        Hook suitable for SocketWorker(shutdown=...)
    """
    triggers = frozenset(names)

    def hook(
        command: SocketCommand,
        response: SocketResponse,
        shutdown: Callable[[], None],
    ) -> None:
        if command.name in triggers:
            shutdown()

    return hook
