"""Pending work keyed in storage: hub callbacks, single invocations and streams."""

from __future__ import annotations

import abc
import logging
from collections.abc import Callable
from typing import Any

from .completer import ManualFuture, ManualFutureCompleter, ManualStream, ManualStreamCompleter
from .context import InvocationContext, _convert
from .protocol import (
    Completion,
    Invocation,
    MessageType,
    ProtocolError,
    SignalRError,
    StreamItem,
    parse_message,
)

logger = logging.getLogger(__name__)


class HubInvocationError(SignalRError):
    """The hub completed an invocation with an error."""

    def __init__(self, invocation_id: str, message: str) -> None:
        super().__init__(f"Invocation {invocation_id} failed: {message}")
        self.invocation_id = invocation_id
        self.message = message


class UpdatableAction(abc.ABC):
    """Something that reacts to incoming hub messages routed to it."""

    @abc.abstractmethod
    def update_with(self, message: str, message_type: MessageType) -> None:
        """Handle one raw message of the given type."""

    @abc.abstractmethod
    def is_completed(self) -> bool:
        """Whether the action expects no further messages."""

    @abc.abstractmethod
    def dispose(self) -> None:
        """Release the action and whoever waits on it."""


class CallbackAction(UpdatableAction):
    """Calls a user callback whenever the hub invokes the registered target."""

    def __init__(self, target: str, callback: Callable[[InvocationContext], Any], client: Any) -> None:
        self.target = target
        self._callback: Callable[[InvocationContext], Any] | None = callback
        self._client = client

    def update_with(self, message: str, message_type: MessageType) -> None:
        if message_type != MessageType.INVOCATION:
            raise ProtocolError("Callbacks accept only invocation data")
        if self._callback is None:
            raise SignalRError(f"The callback for {self.target} has been disposed")
        invocation = Invocation.from_dict(parse_message(message))
        self._callback(InvocationContext(self._client.clone(), invocation))

    def is_completed(self) -> bool:
        return False

    def dispose(self) -> None:
        self._callback = None
        self._client = None


class InvocationAction(UpdatableAction):
    """Waits for the completion of one invocation and resolves its future."""

    def __init__(self, invocation_id: str, completer: ManualFutureCompleter,
                 factory: Callable[..., Any] | None = None) -> None:
        self.invocation_id = invocation_id
        self._completer: ManualFutureCompleter | None = completer
        self._factory = factory

    @classmethod
    def create(cls, invocation_id: str,
               factory: Callable[..., Any] | None = None) -> tuple[InvocationAction, ManualFuture]:
        future, completer = ManualFuture.create()
        return cls(invocation_id, completer, factory), future

    def completable(self) -> bool:
        return self._completer is not None

    def _take_completer(self) -> ManualFutureCompleter:
        completer, self._completer = self._completer, None
        if completer is None:
            raise SignalRError(f"Invocation {self.invocation_id} is already completed")
        return completer

    def complete(self, result: Any) -> None:
        """Resolve the future with a result; allowed once."""
        self._take_completer().complete(result)

    def update_with(self, message: str, message_type: MessageType) -> None:
        if message_type != MessageType.COMPLETION:
            raise ProtocolError(
                f"Cannot complete invocation {self.invocation_id}, with message {message!r}"
            )
        try:
            completion = Completion.from_dict(parse_message(message))
        except ProtocolError:
            logger.error("Cannot parse completion: %s", message)
            return
        if completion.is_result():
            try:
                value = _convert(completion.result, self._factory)
            except ProtocolError:
                logger.error("Cannot parse completion result: %s", message)
                return
            self.complete(value)
        elif completion.is_error():
            logger.error("Cannot complete invocation %s, error: %s",
                         self.invocation_id, completion.error)
            self._take_completer().fail(HubInvocationError(self.invocation_id, completion.error))
        else:
            self.complete(None)

    def is_completed(self) -> bool:
        return self._completer is None

    def dispose(self) -> None:
        completer, self._completer = self._completer, None
        if completer is not None:
            completer.cancel()


class EnumerableAction(UpdatableAction):
    """Feeds streamed items into a ManualStream until the hub completes the stream."""

    def __init__(self, invocation_id: str, completer: ManualStreamCompleter,
                 factory: Callable[..., Any] | None = None) -> None:
        self.invocation_id = invocation_id
        self._completer = completer
        self._factory = factory
        self._completed = False

    @classmethod
    def create(cls, invocation_id: str,
               factory: Callable[..., Any] | None = None) -> tuple[EnumerableAction, ManualStream]:
        stream, completer = ManualStream.create()
        return cls(invocation_id, completer, factory), stream

    def update_with(self, message: str, message_type: MessageType) -> None:
        if message_type == MessageType.STREAM_ITEM:
            try:
                item = StreamItem.from_dict(parse_message(message))
                value = _convert(item.item, self._factory)
            except ProtocolError:
                logger.error("Cannot update stream %s with unparseable item %s",
                             self.invocation_id, message)
                return
            self._completer.push(value)
        elif message_type == MessageType.COMPLETION:
            try:
                Completion.from_dict(parse_message(message))
            except ProtocolError:
                logger.error("Cannot parse completion: %s", message)
                return
            self._completer.close()
        else:
            raise ProtocolError(
                f"Cannot update stream {self.invocation_id} with message {message!r}"
            )

    def is_completed(self) -> bool:
        return self._completed

    def dispose(self) -> None:
        self._completed = True
        self._completer.close()