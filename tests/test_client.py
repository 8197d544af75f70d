import asyncio
import json
from dataclasses import dataclass

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from signalr_client.actions import HubInvocationError
from signalr_client.client import SignalRClient
from signalr_client.communication import ConnectionError as HubConnectionError
from signalr_client.communication import NegotiationError
from signalr_client.context import InvocationContext

RS = "\x1e"
CALLBACK_ENTITY = {"text": "callback", "number": 42}


@dataclass
class Entity:
    number: int
    text: str


async def within(awaitable):
    return await asyncio.wait_for(awaitable, 5)


def make_app():
    async def negotiate_ok(request):
        return web.json_response({
            "connectionId": "connection",
            "negotiateVersion": 1,
            "availableTransports": [
                {"transport": "WebSockets", "transferFormats": ["Text", "Binary"]},
            ],
        })

    async def negotiate_no_ws(request):
        return web.json_response({
            "connectionId": "connection",
            "negotiateVersion": 1,
            "availableTransports": [
                {"transport": "LongPolling", "transferFormats": ["Text"]},
            ],
        })

    async def hub(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        waiting = {}
        tasks = set()
        lock = asyncio.Lock()

        async def emit(payload):
            async with lock:
                await ws.send_str(json.dumps(payload) + RS)

        async def complete(invocation_id, result):
            await emit({"type": 3, "invocationId": invocation_id, "result": result})

        async def respond(invocation_id, name):
            future = asyncio.get_running_loop().create_future()
            waiting["server_1"] = future
            await emit({"type": 1, "invocationId": "server_1", "target": name,
                        "arguments": [CALLBACK_ENTITY]})
            result = await future
            await complete(invocation_id, result == CALLBACK_ENTITY)

        async for msg in ws:
            if msg.type != aiohttp.WSMsgType.TEXT:
                continue
            for raw in msg.data.split(RS):
                if not raw:
                    continue
                data = json.loads(raw)
                if "protocol" in data:
                    await emit({})
                    await emit({"type": 6})
                    continue
                kind = data.get("type")
                if kind == 3:
                    future = waiting.pop(data["invocationId"], None)
                    if future is not None and not future.done():
                        future.set_result(data.get("result"))
                    continue
                target = data.get("target")
                args = data.get("arguments", [])
                invocation_id = data.get("invocationId")
                if kind == 4 and target == "HundredEntities":
                    for number in range(100):
                        await emit({"type": 2, "invocationId": invocation_id,
                                    "item": {"text": f"entity{number}", "number": number}})
                    await emit({"type": 3, "invocationId": invocation_id})
                elif target == "SingleEntity":
                    await complete(invocation_id, {"text": "test", "number": 1})
                elif target == "PushEntity":
                    await complete(invocation_id, args == [{"text": "push1", "number": 100}])
                elif target == "PushTwoEntities":
                    first, second = args
                    await complete(invocation_id, {
                        "text": first["text"] + second["text"],
                        "number": first["number"] + second["number"],
                    })
                elif target == "TriggerEntityCallback":
                    await emit({"type": 1, "target": args[0], "arguments": [CALLBACK_ENTITY]})
                elif target == "TriggerEntityResponse":
                    task = asyncio.get_running_loop().create_task(respond(invocation_id, args[0]))
                    tasks.add(task)
                elif target == "Fail":
                    await emit({"type": 3, "invocationId": invocation_id, "error": "boom"})
        for task in tasks:
            task.cancel()
        return ws

    app = web.Application()
    app.router.add_post("/test/negotiate", negotiate_ok)
    app.router.add_get("/test", hub)
    app.router.add_post("/nows/negotiate", negotiate_no_ws)
    return app


@pytest_asyncio.fixture
async def hub_port():
    runner = web.AppRunner(make_app())
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    yield port
    await runner.cleanup()


async def connect(port, hub="test"):
    return await within(SignalRClient.connect(
        "127.0.0.1", hub, lambda c: c.with_port(port).unsecure()))


@pytest.mark.asyncio
async def test_invoke_single_entity(hub_port):
    async with await connect(hub_port) as client:
        entity = await within(client.invoke("SingleEntity", factory=Entity))
    assert entity == Entity(number=1, text="test")


@pytest.mark.asyncio
async def test_enumerate_hundred_entities(hub_port):
    async with await connect(hub_port) as client:
        stream = await within(client.enumerate("HundredEntities", factory=Entity))
        items = await within(_collect(stream))
    assert len(items) == 100
    assert items[0] == Entity(number=0, text="entity0")
    assert items[-1] == Entity(number=99, text="entity99")


async def _collect(stream):
    return [item async for item in stream]


@pytest.mark.asyncio
async def test_invoke_with_configured_argument(hub_port):
    async with await connect(hub_port) as client:
        pushed = await within(client.invoke(
            "PushEntity", configure=lambda c: c.argument(Entity(text="push1", number=100))))
    assert pushed is True


@pytest.mark.asyncio
async def test_cloned_client_merges_two_entities(hub_port):
    async with await connect(hub_port) as client:
        second = client.clone()
        merged = await within(second.invoke(
            "PushTwoEntities",
            configure=lambda c: c.argument(Entity(text="entity1", number=200))
                                 .argument(Entity(text="entity2", number=300)),
            factory=Entity))
        await second.disconnect()
        still_working = await within(client.invoke("SingleEntity", factory=Entity))
    assert merged.number == 500
    assert merged.text == "entity1entity2"
    assert still_working.text == "test"


@pytest.mark.asyncio
async def test_invoke_with_positional_arguments(hub_port):
    async with await connect(hub_port) as client:
        merged = await within(client.invoke(
            "PushTwoEntities", Entity(number=1, text="a"), Entity(number=2, text="b"),
            factory=Entity))
    assert merged == Entity(number=3, text="ab")


@pytest.mark.asyncio
async def test_callback_receives_entity(hub_port):
    received = []
    async with await connect(hub_port) as client:
        client.register("callback1", lambda ctx: received.append(ctx.argument(0, Entity)))
        await within(client.send("TriggerEntityCallback", "callback1"))
        await within(client.invoke("SingleEntity"))
    assert received == [Entity(number=42, text="callback")]


@pytest.mark.asyncio
async def test_unregistered_callback_is_not_called(hub_port):
    received = []
    async with await connect(hub_port) as client:
        handler = client.register("callback1", lambda ctx: received.append(ctx.argument(0)))
        handler.unregister()
        await within(client.send(
            "TriggerEntityCallback", configure=lambda c: c.argument("callback1")))
        await within(client.invoke("SingleEntity"))
    assert received == []


@pytest.mark.asyncio
async def test_callback_completes_server_invocation(hub_port):
    def on_callback2(ctx):
        entity = ctx.argument(0, Entity)
        InvocationContext.spawn(ctx.complete(entity))

    async with await connect(hub_port) as client:
        handler = client.register("callback2", on_callback2)
        success = await within(client.invoke(
            "TriggerEntityResponse", configure=lambda c: c.argument("callback2")))
        handler.unregister()
    assert success is True


@pytest.mark.asyncio
async def test_hub_error_raises(hub_port):
    async with await connect(hub_port) as client:
        with pytest.raises(HubInvocationError) as info:
            await within(client.invoke("Fail"))
    assert info.value.message == "boom"


@pytest.mark.asyncio
async def test_send_after_disconnect_raises(hub_port):
    client = await connect(hub_port)
    await client.disconnect()
    with pytest.raises(HubConnectionError):
        await client.send("SingleEntity")


@pytest.mark.asyncio
async def test_negotiation_without_websockets_fails(hub_port):
    with pytest.raises(NegotiationError, match="no matching communication protocols"):
        await connect(hub_port, hub="nows")


@pytest.mark.asyncio
async def test_negotiation_with_missing_hub_fails(hub_port):
    with pytest.raises(NegotiationError, match="HTTP negotiation with endpoint"):
        await connect(hub_port, hub="missing")