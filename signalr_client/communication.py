"""Negotiation over HTTP and the websocket connection that carries hub messages."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import aiohttp

from .configuration import Authentication, BasicAuthentication, ConnectionConfiguration
from .protocol import (
    HandshakeRequest,
    NegotiateResponse,
    ProtocolError,
    SignalRError,
    message_type_of,
    split_messages,
    to_json,
)
from .storage import ActionStorage

logger = logging.getLogger(__name__)

WEB_SOCKET_TRANSPORT = "WebSockets"
TEXT_TRANSPORT_FORMAT = "Text"

_CLOSED_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.ERROR,
)


class NegotiationError(SignalRError):
    """The HTTP negotiation with the hub failed."""


class ConnectionError(SignalRError):  # noqa: A001 - package-specific connection failure
    """The websocket connection could not be made or used."""


@dataclass(frozen=True)
class ConnectionData:
    """The outcome of a negotiation: where to connect and the connection id."""

    endpoint: str
    connection_id: str


def basic_auth(username: str, password: str | None) -> str:
    """The Authorization header value for HTTP basic authentication."""
    return BasicAuthentication(username, password).header()


def create_configuration(endpoint: str, negotiate: NegotiateResponse) -> ConnectionData | None:
    """Connection data if the hub offers websockets with text transfer, otherwise None."""
    if negotiate.supports(WEB_SOCKET_TRANSPORT, TEXT_TRANSPORT_FORMAT):
        return ConnectionData(endpoint=endpoint, connection_id=negotiate.connection_id)
    return None


async def post_json(endpoint: str, authentication: Authentication | None) -> Any:
    """POST an empty body and return the decoded JSON answer."""
    headers: dict[str, str] = {}
    header = authentication.header() if authentication is not None else None
    if header:
        headers["Authorization"] = header

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(endpoint, data=b"", headers=headers) as response:
                text = await response.text()
    except UnicodeDecodeError as exc:
        raise NegotiationError("The returned json is empty") from exc
    except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
        raise NegotiationError(f"The call failed {exc}") from exc

    if not text:
        raise NegotiationError("The returned json is empty")
    try:
        return json.loads(text)
    except ValueError as exc:
        raise NegotiationError(
            f"The HTTP response is failed to deserialize: {exc}, {text}"
        ) from exc


async def negotiate(configuration: ConnectionConfiguration) -> ConnectionData:
    """Negotiate with the hub and return the websocket connection data."""
    endpoint = f"{configuration.web_url()}/negotiate?negotiateVersion=1"
    try:
        data = await post_json(endpoint, configuration.authentication)
        response = NegotiateResponse.from_dict(data)
    except (NegotiationError, ProtocolError) as exc:
        raise NegotiationError(f"HTTP negotiation with endpoint {endpoint} failed {exc}") from exc

    connection = create_configuration(configuration.socket_url(), response)
    if connection is None:
        raise NegotiationError("The negotiation concluded no matching communication protocols")
    logger.info("Negotiation successful: %s", connection)
    return connection


def _dispatch(storage: ActionStorage, message: str) -> None:
    try:
        message_type = message_type_of(message)
    except ProtocolError:
        logger.error("Message could not be parsed: %r", message)
        return
    try:
        storage.process_message(message, message_type)
    except Exception as exc:  # user callbacks may raise anything; keep receiving
        logger.error("Error occurred processing message: %s", exc)


class _Connection:
    """An open websocket shared by every clone of a client."""

    def __init__(self, session: aiohttp.ClientSession,
                 socket: aiohttp.ClientWebSocketResponse) -> None:
        self.session = session
        self.socket = socket
        self.receiver: asyncio.Task | None = None
        self.send_lock = asyncio.Lock()
        self.references = 1

    def start_receiving(self, storage: ActionStorage) -> None:
        self.receiver = asyncio.get_running_loop().create_task(self._receive(storage))

    async def _receive(self, storage: ActionStorage) -> None:
        async for frame in self.socket:
            if frame.type == aiohttp.WSMsgType.TEXT:
                for message in split_messages(frame.data):
                    _dispatch(storage, message)
            elif frame.type == aiohttp.WSMsgType.ERROR:
                logger.error("Websocket error: %s", self.socket.exception())
                break
        logger.info("Receiver finished")

    async def send(self, data: Any) -> None:
        payload = to_json(data)
        async with self.send_lock:
            try:
                await self.socket.send_str(payload)
            except (aiohttp.ClientError, OSError, RuntimeError) as exc:
                raise ConnectionError(str(exc)) from exc

    async def close(self) -> None:
        if self.receiver is not None:
            logger.info("Stopping receiver...")
            receiver, self.receiver = self.receiver, None
            receiver.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await receiver
            logger.info("Receiver stopped")
        await self.socket.close()
        await self.session.close()


class CommunicationClient:
    """A websocket connection to a hub; clones share the connection and the storage."""

    def __init__(self, endpoint: str, storage: ActionStorage | None = None,
                 _connection: _Connection | None = None) -> None:
        self._endpoint = endpoint
        self._actions = storage if storage is not None else ActionStorage()
        self._connection = _connection

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @classmethod
    async def connect(cls, data: ConnectionData) -> CommunicationClient:
        """Open the websocket, perform the handshake and start receiving."""
        parts = urlsplit(data.endpoint)
        if parts.scheme not in ("ws", "wss") or not parts.netloc:
            raise ConnectionError(f"The endpoint Uri {data.endpoint!r} is invalid")
        logger.info("Creating communication client to %s", data.endpoint)
        client = cls(data.endpoint)
        await client._connect_internal()
        return client

    async def _connect_internal(self) -> None:
        logger.info("Connecting to endpoint %s", self._endpoint)
        session = aiohttp.ClientSession()
        try:
            try:
                socket = await session.ws_connect(self._endpoint)
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
                raise ConnectionError(str(exc)) from exc

            logger.info("Initiating handshake...")
            try:
                await socket.send_str(to_json(HandshakeRequest("json")))
            except (aiohttp.ClientError, OSError, RuntimeError) as exc:
                raise ConnectionError(str(exc)) from exc

            reply = await socket.receive()
            if reply.type in _CLOSED_TYPES:
                raise ConnectionError("Handshake error")
        except BaseException:
            await session.close()
            raise

        connection = _Connection(session, socket)
        connection.start_receiving(self._actions)
        self._connection = connection

    def storage(self) -> ActionStorage:
        return self._actions

    async def send(self, data: Any) -> None:
        """Serialize a message and send it over the websocket."""
        if self._connection is None:
            raise ConnectionError("Client is not connected, cannot send")
        await self._connection.send(data)

    def clone(self) -> CommunicationClient:
        """Another handle on the same connection and storage."""
        if self._connection is not None:
            self._connection.references += 1
        return CommunicationClient(self._endpoint, self._actions, self._connection)

    async def disconnect(self) -> None:
        """Detach this handle; the last one closes the connection and clears the storage."""
        connection, self._connection = self._connection, None
        if connection is None:
            logger.info("The client is not connected, cannot disconnect")
            return
        connection.references -= 1
        if connection.references > 0:
            logger.info("The underlying connection has %d more references, not disconnecting.",
                        connection.references)
            return
        logger.info("The underlying connection is going to be disposed.")
        await connection.close()
        self._actions.dispose()