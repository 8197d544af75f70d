"""Arguments for outgoing hub calls and the context handed to hub callbacks."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Coroutine, Mapping
from typing import Any

from .protocol import Completion, Invocation, ProtocolError, SignalRError

logger = logging.getLogger(__name__)

_BACKGROUND_TASKS: set[asyncio.Task] = set()


def _convert(value: Any, factory: Callable[..., Any] | None) -> Any:
    """Turn plain JSON data into the requested type; raises ProtocolError on failure."""
    if factory is None:
        return value
    try:
        if (
            isinstance(factory, type)
            and dataclasses.is_dataclass(factory)
            and isinstance(value, Mapping)
        ):
            names = {f.name for f in dataclasses.fields(factory) if f.init}
            return factory(**{key: item for key, item in value.items() if key in names})
        return factory(value)
    except (TypeError, ValueError, KeyError) as exc:
        raise ProtocolError(f"Cannot convert {value!r}: {exc}") from exc


class ArgumentConfiguration:
    """Collects the positional arguments of a hub method call."""

    def __init__(self, invocation: Invocation) -> None:
        self._invocation: Invocation | None = invocation

    def argument(self, value: Any) -> ArgumentConfiguration:
        """Append an argument; the order must match the hub method's parameters."""
        if self._invocation is not None:
            try:
                self._invocation.with_argument(value)
            except ProtocolError as exc:
                logger.error("Argument could not be put into invocation data: %s", exc)
        return self

    def build_invocation(self) -> Invocation:
        """Hand over the configured invocation; it can be built only once."""
        if self._invocation is None:
            raise SignalRError("The invocation has already been built")
        invocation, self._invocation = self._invocation, None
        return invocation


@dataclasses.dataclass
class InvocationContext:
    """What a callback receives: the hub's invocation and a client for further calls."""

    client: Any
    invocation: Invocation

    def argument(self, index: int, factory: Callable[..., Any] | None = None) -> Any:
        """Return the zero-based argument, converted with the factory when one is given."""
        arguments = self.invocation.arguments
        if arguments is None:
            raise SignalRError("There are no arguments for the invocation")
        if not 0 <= index < len(arguments):
            raise SignalRError(f"The argument count is not greater than the index {index}")
        value = arguments[index]
        try:
            return _convert(value, factory)
        except ProtocolError as exc:
            raise ProtocolError(
                f"The argument cannot be deserialized to the requested type {value!r}"
            ) from exc

    async def complete(self, result: Any) -> None:
        """Send a result back to the hub for an invocation that awaits one."""
        invocation_id = self.invocation.invocation_id
        if invocation_id is None:
            raise SignalRError(
                "The completion cannot be sent, because there was no invocation id for the call"
            )
        await self.client.send_direct(Completion.create_result(invocation_id, result))

    @staticmethod
    def spawn(coroutine: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a coroutine in the background on the running event loop."""
        task = asyncio.get_running_loop().create_task(coroutine)
        _BACKGROUND_TASKS.add(task)
        task.add_done_callback(_BACKGROUND_TASKS.discard)
        return task