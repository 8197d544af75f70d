# signalr-client

An asyncio client for SignalR hubs. It negotiates with the hub over HTTP,
opens a WebSocket using the JSON hub protocol, and lets you:

- invoke hub methods and await their results,
- call hub methods without waiting for a response,
- consume hub methods that return `IAsyncEnumerable` as async iterators,
- register callbacks the hub can call, and answer them with a result.

The only runtime dependency is `aiohttp`.

## Connecting

```python
import asyncio

from signalr_client.client import SignalRClient


async def main():
    client = await SignalRClient.connect(
        "localhost",
        "test",
        lambda c: c.with_port(5220).unsecure(),
    )
    ...
    await client.disconnect()


asyncio.run(main())
```

A client is also an async context manager; leaving the block calls
`disconnect()`:

```python
async with await SignalRClient.connect("localhost", "test") as client:
    ...
```

The optional third argument of `connect` receives a `ConnectionConfiguration`
(from `signalr_client.configuration`) and may change it before the connection
is made. Each method returns the configuration, so calls can be chained:

| method                                 | effect                                        |
|----------------------------------------|-----------------------------------------------|
| `with_port(port)`                      | connect to `domain:port`                      |
| `with_hub(hub)`                        | change the hub path                           |
| `secure()` / `unsecure()`              | `https`/`wss` (the default) or `http`/`ws`    |
| `authenticate_basic(user, password)`   | HTTP basic authentication for negotiation     |
| `authenticate_bearer(token)`           | bearer token authentication for negotiation   |

```python
password = "password"


def configure(c):
    c.with_port(5220)
    c.authenticate_basic("user", password)


client = await SignalRClient.connect("localhost", "test", configure)
```

Negotiation posts to `<scheme>://<domain>[:<port>]/<hub>/negotiate?negotiateVersion=1`.
If it fails, or the hub offers no `WebSockets` transport with the `Text`
format, `connect` raises `NegotiationError`; if the WebSocket cannot be opened
or the handshake fails it raises `ConnectionError`. Both come from
`signalr_client.communication` and derive from
`signalr_client.protocol.SignalRError`.

## Invoking hub methods

Results arrive as decoded JSON. Pass `factory` to convert them. A dataclass
type can be passed directly: the keys of a JSON object that match its fields
become its arguments. Any other callable is called with the decoded value.

```python
from dataclasses import dataclass


@dataclass
class TestEntity:
    number: int
    text: str


single = await client.invoke("SingleEntity", factory=TestEntity)

ok = await client.invoke("PushEntity", {"text": "push1", "number": 100})

merged = await client.invoke(
    "PushTwoEntities",
    {"text": "entity1", "number": 200},
    {"text": "entity2", "number": 300},
    factory=TestEntity,
)
assert merged.number == 500
```

Arguments may be given positionally, or added with a `configure` callable
that receives an `ArgumentConfiguration` (from `signalr_client.context`);
its `argument(value)` returns the configuration, so calls can be chained.
Positional arguments come first, then those added by `configure`. Dataclass
instances are sent as JSON objects.

```python
await client.send("TriggerEntityCallback", configure=lambda a: a.argument("callback1"))
```

`send` does not wait for a result. If the hub completes an invocation with an
error, `invoke` raises `HubInvocationError` (from `signalr_client.actions`);
if the call is dropped because the connection is closed it raises
`asyncio.CancelledError`. Sending on a disconnected client raises
`ConnectionError`.

## Streaming

```python
stream = await client.enumerate("HundredEntities", factory=TestEntity)
async for item in stream:
    print(item.text, item.number)
```

`enumerate` takes the same positional arguments and `configure` as `invoke`.
The iteration ends when the hub sends its completion, or when the connection
is closed by the last client.

## Callbacks from the hub

```python
from signalr_client.context import InvocationContext


def on_callback1(ctx):
    received = ctx.argument(0, TestEntity)
    print("callback1:", received.text)


def on_callback2(ctx):
    received = ctx.argument(0, TestEntity)
    InvocationContext.spawn(ctx.complete(received))


handler1 = client.register("callback1", on_callback1)
handler2 = client.register("callback2", on_callback2)

assert await client.invoke("TriggerEntityResponse", "callback2")

handler1.unregister()
handler2.unregister()
```

- `ctx.argument(index, factory=None)` returns the zero-based argument, raising
  `SignalRError` when there is no such argument and `ProtocolError` when the
  factory cannot convert it.
- `ctx.complete(result)` sends the result back when the hub awaits one; it
  raises `SignalRError` if the hub call carried no invocation id.
- `ctx.client` uses the same connection and can call the hub from inside the
  callback; it does not own the connection, so its `disconnect()` does nothing.
- `InvocationContext.spawn(coroutine)` runs a coroutine as a background task
  on the running event loop, which lets a plain callback send a completion.

Only one callback can be registered per target name; a second registration
for the same name is ignored until the first is unregistered.

## Sharing a client

`client.clone()` returns a client that shares the same connection and pending
calls. The connection is closed only when the last clone calls
`disconnect()`; at that point pending invocations are cancelled and open
streams end.

## Lower-level pieces

- `signalr_client.protocol` holds the hub protocol messages (`Invocation`,
  `Completion`, `StreamItem`, `CancelInvocation`, `Ping`, `Close`,
  `HandshakeRequest`, `NegotiateResponse`, ...) and the helpers `to_json`,
  `parse_message`, `split_messages`, `strip_record_separator` and
  `message_type_of`.
- `signalr_client.completer` provides `ManualFuture` and `ManualStream`,
  awaitables completed from outside, and `CompletedFuture`, an awaitable that
  is ready at once.
- `signalr_client.storage.ActionStorage` routes incoming messages to pending
  invocations, streams and callbacks.
- `signalr_client.communication.CommunicationClient` is the WebSocket
  connection itself.

## What it does not do

- It speaks only the JSON hub protocol over the WebSockets transport; there
  is no MessagePack, Server-Sent Events or long-polling support.
- It does not reconnect after the connection drops and does not send pings.
- It cannot stream arguments up to the hub, and leaving a stream early does
  not send a cancellation to the hub.
- It is a library only; there is no command-line program.