"""Command and response values exchanged between dispatcher and worker.

A dispatcher builds a SocketCommand, the worker hands it to the application
handler, and the handler answers with a SocketResponse. Both are immutable
once constructed: mapping fields are copied into read-only mappings, so
neither the caller's dict nor a handler can change a command in flight.

The values are not hashable, since their mapping fields are not.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Protocol


def _thaw(value: Any) -> Any:
    """Replace read-only mappings nested in a value with plain dicts."""
    if isinstance(value, MappingProxyType):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, dict):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_thaw(v) for v in value]
    return value


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType({k: _thaw(v) for k, v in (mapping or {}).items()})


@dataclass(frozen=True)
class SocketCommand:
    """A named operation requested by a dispatcher."""
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    __hash__ = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("SocketCommand name must be a non-empty string")
        object.__setattr__(self, "arguments", _freeze(self.arguments))

    def __reduce__(self):
        return (SocketCommand, (self.name, dict(self.arguments), self.id))


@dataclass(frozen=True)
class SocketResponse:
    """
    The handler's answer to a command.

    `status` is owned by the application: the worker never inspects it.
    `id` is normally echoed from the command for correlation.
    """
    status: bool
    data: Mapping[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    __hash__ = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", bool(self.status))
        object.__setattr__(self, "data", _freeze(self.data))

    def __reduce__(self):
        return (SocketResponse, (self.status, dict(self.data), self.id))


class CommandHandler(Protocol):
    """Executes a command and produces the response sent back to the dispatcher."""

    def __call__(self, command: SocketCommand) -> SocketResponse:
        ...


class CommandShutdown(Protocol):
    """
    Post-response hook run after the connection is closed.

    Receives the command, the response that was sent, and a zero-argument
    callable that shuts the worker down. The hook decides whether to call it.
    """

    def __call__(
        self,
        command: SocketCommand,
        response: SocketResponse,
        shutdown: Callable[[], None],
    ) -> None:
        ...
