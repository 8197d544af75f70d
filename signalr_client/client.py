"""The public client for calling methods on a SignalR hub and receiving its callbacks."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from .communication import CommunicationClient, negotiate
from .completer import ManualStream
from .configuration import ConnectionConfiguration
from .context import ArgumentConfiguration, InvocationContext
from .protocol import Invocation
from .storage import CallbackHandler, StorageUnregistrationHandler

logger = logging.getLogger(__name__)


class _ContextClientSource:
    """Hands callback contexts a client that uses the connection without owning it."""

    def __init__(self, client: SignalRClient) -> None:
        self._client = client

    def clone(self) -> SignalRClient:
        return SignalRClient(self._client._connection, _owned=False)


class SignalRClient:
    """A client connected to a SignalR hub.

    Clones share the underlying connection; the connection is closed when the last
    owning clone disconnects.
    """

    def __init__(self, connection: CommunicationClient, *, _owned: bool = True) -> None:
        self._connection = connection
        self._actions = connection.storage()
        self._owned = _owned

    @classmethod
    async def connect(
        cls,
        domain: str,
        hub: str,
        options: Callable[[ConnectionConfiguration], Any] | None = None,
    ) -> SignalRClient:
        """Negotiate with the hub and open a connection; options may adjust the configuration."""
        configuration = ConnectionConfiguration(domain, hub)
        if options is not None:
            options(configuration)
        data = await negotiate(configuration)
        logger.info("Negotiation successful: %s", data)
        connection = await CommunicationClient.connect(data)
        return cls(connection)

    async def __aenter__(self) -> SignalRClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    def register(self, target: str,
                 callback: Callable[[InvocationContext], Any]) -> CallbackHandler:
        """Register a callback the hub can call by target name."""
        self._actions.add_callback(target, callback, _ContextClientSource(self))
        return StorageUnregistrationHandler(self._actions, target)

    @staticmethod
    def _configure(invocation: Invocation, args: Iterable[Any],
                   configure: Callable[[ArgumentConfiguration], Any] | None) -> Invocation:
        for value in args:
            invocation.with_argument(value)
        if configure is not None:
            arguments = ArgumentConfiguration(invocation)
            configure(arguments)
            invocation = arguments.build_invocation()
        return invocation

    async def invoke(self, target: str, *args: Any,
                     configure: Callable[[ArgumentConfiguration], Any] | None = None,
                     factory: Callable[..., Any] | None = None) -> Any:
        """Call a hub method and wait for its result, converted with the factory if given."""
        invocation_id = self._actions.create_key(target)
        invocation = Invocation.create_single(target).with_invocation_id(invocation_id)
        invocation = self._configure(invocation, args, configure)
        future = self._actions.add_invocation(invocation_id, factory)
        try:
            await self._connection.send(invocation)
        except BaseException:
            self._actions.remove(invocation_id)
            raise
        return await future

    async def send(self, target: str, *args: Any,
                   configure: Callable[[ArgumentConfiguration], Any] | None = None) -> None:
        """Call a hub method without waiting for a response."""
        invocation = self._configure(Invocation.create_single(target), args, configure)
        await self._connection.send(invocation)

    async def send_direct(self, data: Any) -> None:
        """Send a ready-made protocol message."""
        await self._connection.send(data)

    async def enumerate(self, target: str, *args: Any,
                        configure: Callable[[ArgumentConfiguration], Any] | None = None,
                        factory: Callable[..., Any] | None = None) -> ManualStream:
        """Call a streaming hub method and return an async iterator over its items."""
        invocation_id = self._actions.create_key(target)
        invocation = Invocation.create_multiple(target).with_invocation_id(invocation_id)
        invocation = self._configure(invocation, args, configure)
        stream = self._actions.add_stream(invocation_id, factory)
        try:
            await self._connection.send(invocation)
        except BaseException:
            self._actions.remove(invocation_id)
            raise
        return stream

    def clone(self) -> SignalRClient:
        """Another client on the same connection."""
        return SignalRClient(self._connection.clone())

    async def disconnect(self) -> None:
        """Release this client; the last owning clone closes the connection."""
        if not self._owned:
            logger.info("Callback clients do not own the connection, not disconnecting.")
            return
        await self._connection.disconnect()