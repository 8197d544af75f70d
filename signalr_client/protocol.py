"""SignalR JSON hub protocol messages and helpers for encoding and decoding them."""

from __future__ import annotations

import dataclasses
import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

RECORD_SEPARATOR = "\x1e"

_MISSING = object()


class SignalRError(Exception):
    """Base class for all errors raised by this package."""


class ProtocolError(SignalRError):
    """A message could not be encoded or decoded."""


class MessageType(enum.IntEnum):
    """The numeric message types of the SignalR hub protocol."""

    INVOCATION = 1
    STREAM_ITEM = 2
    COMPLETION = 3
    STREAM_INVOCATION = 4
    CANCEL_INVOCATION = 5
    PING = 6
    CLOSE = 7
    OTHER = 8


def _default(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_default)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Serialization error: {exc}") from exc


def _to_value(value: Any) -> Any:
    """Convert a value into plain JSON data (dicts, lists, strings, numbers)."""
    return json.loads(_dumps(value))


def to_json(value: Any) -> str:
    """Serialize a message to compact JSON terminated by the record separator."""
    return _dumps(value) + RECORD_SEPARATOR


def parse_message(message: str) -> Any:
    """Parse one JSON message, raising ProtocolError when it is not valid JSON."""
    try:
        return json.loads(message)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(str(exc)) from exc


def strip_record_separator(text: str) -> str:
    """Remove every trailing record separator from the text."""
    return text.rstrip(RECORD_SEPARATOR)


def split_messages(text: str) -> list[str]:
    """Split a transport frame into its non-empty messages."""
    return [
        part
        for part in (strip_record_separator(chunk) for chunk in text.split(RECORD_SEPARATOR))
        if part
    ]


def message_type_of(message: str) -> MessageType:
    """Return the message type of a raw JSON message."""
    return Ping.from_dict(parse_message(message)).message_type


def _require_mapping(data: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ProtocolError(f"{name} must be a JSON object")
    return data


def _get(data: Mapping[str, Any], key: str, kind: type | tuple[type, ...] | None,
         name: str, *, required: bool = True) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        if required:
            raise ProtocolError(f"{name}: missing field `{key}`")
        return None
    if kind is not None:
        if isinstance(value, bool) and kind in (int, (int,)):
            raise ProtocolError(f"{name}: field `{key}` has an invalid type")
        if not isinstance(value, kind):
            raise ProtocolError(f"{name}: field `{key}` has an invalid type")
    return value


def _message_type(data: Mapping[str, Any], name: str) -> MessageType:
    raw = _get(data, "type", int, name)
    try:
        return MessageType(raw)
    except ValueError as exc:
        raise ProtocolError(f"{name}: invalid message type {raw!r}") from exc


def _headers(data: Mapping[str, Any], name: str) -> dict[str, str] | None:
    headers = _get(data, "headers", Mapping, name, required=False)
    return None if headers is None else dict(headers)


def _compact(pairs: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in pairs.items() if value is not None}


@dataclass
class Invocation:
    """A request to invoke a target method with arguments on the remote endpoint."""

    target: str
    message_type: MessageType = MessageType.INVOCATION
    headers: dict[str, str] | None = None
    invocation_id: str | None = None
    arguments: list[Any] | None = field(default_factory=list)
    stream_ids: list[str] | None = None

    @classmethod
    def create_single(cls, target: str) -> Invocation:
        return cls(target=str(target), message_type=MessageType.INVOCATION)

    @classmethod
    def create_multiple(cls, target: str) -> Invocation:
        return cls(target=str(target), message_type=MessageType.STREAM_INVOCATION)

    def with_argument(self, value: Any) -> Invocation:
        """Append a serialized argument; raises ProtocolError if it cannot be serialized."""
        converted = _to_value(value)
        if self.arguments is None:
            self.arguments = [converted]
        else:
            self.arguments.append(converted)
        return self

    def with_invocation_id(self, invocation_id: Any) -> Invocation:
        self.invocation_id = str(invocation_id)
        return self

    def with_streams(self, stream_ids: list[str]) -> Invocation:
        if stream_ids:
            self.stream_ids = list(stream_ids)
        return self

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "type": int(self.message_type),
            "headers": self.headers,
            "invocationId": self.invocation_id,
            "target": self.target,
            "arguments": self.arguments,
            "streamIds": self.stream_ids,
        })

    @classmethod
    def from_dict(cls, data: Any) -> Invocation:
        data = _require_mapping(data, "Invocation")
        arguments = _get(data, "arguments", list, "Invocation", required=False)
        stream_ids = _get(data, "streamIds", list, "Invocation", required=False)
        return cls(
            target=_get(data, "target", str, "Invocation"),
            message_type=_message_type(data, "Invocation"),
            headers=_headers(data, "Invocation"),
            invocation_id=_get(data, "invocationId", str, "Invocation", required=False),
            arguments=None if arguments is None else list(arguments),
            stream_ids=None if stream_ids is None else list(stream_ids),
        )


@dataclass
class Completion:
    """Signals that an invocation finished, carrying either a result or an error."""

    invocation_id: str
    result: Any = None
    error: str | None = None
    headers: dict[str, str] | None = None
    message_type: MessageType = MessageType.COMPLETION

    @classmethod
    def create_result(cls, invocation_id: str, result: Any) -> Completion:
        return cls(invocation_id=invocation_id, result=result)

    def is_error(self) -> bool:
        return self.error is not None

    def is_result(self) -> bool:
        return self.result is not None

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "type": int(self.message_type),
            "headers": self.headers,
            "invocationId": self.invocation_id,
            "result": None if self.result is None else _to_value(self.result),
            "error": self.error,
        })

    @classmethod
    def from_dict(cls, data: Any) -> Completion:
        data = _require_mapping(data, "Completion")
        return cls(
            invocation_id=_get(data, "invocationId", str, "Completion"),
            result=data.get("result"),
            error=_get(data, "error", str, "Completion", required=False),
            headers=_headers(data, "Completion"),
            message_type=_message_type(data, "Completion"),
        )


@dataclass
class StreamItem:
    """One item of streamed response data for a previous stream invocation."""

    invocation_id: str
    item: Any
    headers: dict[str, str] | None = None
    message_type: MessageType = MessageType.STREAM_ITEM

    def to_dict(self) -> dict[str, Any]:
        payload = _compact({
            "type": int(self.message_type),
            "headers": self.headers,
            "invocationId": self.invocation_id,
        })
        payload["item"] = _to_value(self.item)
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> StreamItem:
        data = _require_mapping(data, "StreamItem")
        if "item" not in data:
            raise ProtocolError("StreamItem: missing field `item`")
        return cls(
            invocation_id=_get(data, "invocationId", str, "StreamItem"),
            item=data["item"],
            headers=_headers(data, "StreamItem"),
            message_type=_message_type(data, "StreamItem"),
        )


@dataclass
class CancelInvocation:
    """Sent by the client to cancel a streaming invocation on the server."""

    invocation_id: str
    headers: dict[str, str] | None = None
    message_type: MessageType = MessageType.CANCEL_INVOCATION

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "type": int(self.message_type),
            "headers": self.headers,
            "invocationId": self.invocation_id,
        })

    @classmethod
    def from_dict(cls, data: Any) -> CancelInvocation:
        data = _require_mapping(data, "CancelInvocation")
        return cls(
            invocation_id=_get(data, "invocationId", str, "CancelInvocation"),
            headers=_headers(data, "CancelInvocation"),
            message_type=_message_type(data, "CancelInvocation"),
        )


@dataclass
class PossibleInvocation:
    """The routing fields any message may carry: an invocation id and a target."""

    message_type: MessageType
    headers: dict[str, str] | None = None
    invocation_id: str | None = None
    target: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> PossibleInvocation:
        data = _require_mapping(data, "PossibleInvocation")
        return cls(
            message_type=_message_type(data, "PossibleInvocation"),
            headers=_headers(data, "PossibleInvocation"),
            invocation_id=_get(data, "invocationId", str, "PossibleInvocation", required=False),
            target=_get(data, "target", str, "PossibleInvocation", required=False),
        )


@dataclass
class HandshakeRequest:
    """Sent by the client to agree on the message format."""

    protocol: str
    version: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"protocol": self.protocol, "version": self.version}


@dataclass
class HandshakeResponse:
    """Sent by the server to acknowledge a handshake; carries an error if it failed."""

    error: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> HandshakeResponse:
        data = _require_mapping(data, "HandshakeResponse")
        return cls(error=_get(data, "error", str, "HandshakeResponse", required=False))


@dataclass
class Ping:
    """Sent by either party to check that the connection is alive."""

    message_type: MessageType = MessageType.PING

    def to_dict(self) -> dict[str, Any]:
        return {"type": int(self.message_type)}

    @classmethod
    def from_dict(cls, data: Any) -> Ping:
        data = _require_mapping(data, "Ping")
        return cls(message_type=_message_type(data, "Ping"))


@dataclass
class Close:
    """Sent by the server when the connection is closed."""

    message_type: MessageType = MessageType.CLOSE
    error: str | None = None
    allow_reconnect: bool | None = None

    @classmethod
    def from_dict(cls, data: Any) -> Close:
        data = _require_mapping(data, "Close")
        return cls(
            message_type=_message_type(data, "Close"),
            error=_get(data, "error", str, "Close", required=False),
            allow_reconnect=_get(data, "allowReconnect", bool, "Close", required=False),
        )


@dataclass
class TransportSpec:
    """A transport offered by the server and the transfer formats it accepts."""

    transport: str
    transfer_formats: list[str]

    @classmethod
    def from_dict(cls, data: Any) -> TransportSpec:
        data = _require_mapping(data, "TransportSpec")
        formats = _get(data, "transferFormats", list, "TransportSpec")
        if not all(isinstance(item, str) for item in formats):
            raise ProtocolError("TransportSpec: transfer formats must be strings")
        return cls(
            transport=_get(data, "transport", str, "TransportSpec"),
            transfer_formats=list(formats),
        )


@dataclass
class NegotiateResponse:
    """The server's answer to a negotiation request."""

    connection_id: str
    negotiate_version: int
    available_transports: list[TransportSpec]

    @classmethod
    def from_dict(cls, data: Any) -> NegotiateResponse:
        data = _require_mapping(data, "NegotiateResponse")
        version = _get(data, "negotiateVersion", int, "NegotiateResponse")
        if not 0 <= version <= 255:
            raise ProtocolError(f"NegotiateResponse: negotiate version {version} out of range")
        transports = _get(data, "availableTransports", list, "NegotiateResponse")
        return cls(
            connection_id=_get(data, "connectionId", str, "NegotiateResponse"),
            negotiate_version=version,
            available_transports=[TransportSpec.from_dict(item) for item in transports],
        )

    def supports(self, transport: str, transfer_format: str) -> bool:
        """Whether the first transport of the given name offers the transfer format."""
        spec = next((t for t in self.available_transports if t.transport == transport), None)
        return spec is not None and transfer_format in spec.transfer_formats