"""Tests for the websocket relay client against an in-process fake relay."""

import hashlib
import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from chunkey.publisher import Publisher
from chunkey.reassembler import reassemble
from common.constants import BLOB
from common.exceptions import ConfigError, PublishError, RelayError
from common.protocol import chunk_filter
from common.types import TaggedMessage
from conftest import StaticDecoder
from relay.relay_client import RelayClient


def fake_signer(event):
    """Stand-in for an external signer: adds id, pubkey, created_at and sig."""
    signed = dict(event)
    signed["pubkey"] = "ab" * 32
    signed["created_at"] = 1700000000
    serialized = json.dumps([0, signed["pubkey"], signed["created_at"], signed["kind"], signed["tags"], signed["content"]])
    signed["id"] = hashlib.sha256(serialized.encode()).hexdigest()
    signed["sig"] = "cd" * 64
    return signed


async def async_signer(event):
    return fake_signer(event)


class FakeRelay:
    """Minimal relay: stores events, answers REQ with matches then EOSE."""

    def __init__(self):
        self.events = []
        self.reject = False
        self.close_subscriptions = False
        self.send_eose = True
        self.closed_subscriptions = []

    def matches(self, event, flt):
        if "kinds" in flt and event["kind"] not in flt["kinds"]:
            return False
        for key, values in flt.items():
            if key.startswith("#"):
                tag_values = {t[1] for t in event["tags"] if len(t) > 1 and t[0] == key[1:]}
                if not tag_values & set(values):
                    return False
        return True

    async def handler(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        async for msg in ws:
            frame = json.loads(msg.data)
            if frame[0] == "EVENT":
                event = frame[1]
                if self.reject:
                    await ws.send_json(["OK", event["id"], False, "blocked: test relay"])
                    continue
                self.events.append(event)
                await ws.send_json(["OK", event["id"], True, ""])
            elif frame[0] == "REQ":
                subscription_id, filters = frame[1], frame[2:]
                if self.close_subscriptions:
                    await ws.send_json(["CLOSED", subscription_id, "auth-required: test"])
                    continue
                await ws.send_json(["NOTICE", "hello"])
                await ws.send_json(["EVENT", subscription_id, {"kind": BLOB, "content": 7}])
                for event in self.events:
                    if any(self.matches(event, flt) for flt in filters):
                        await ws.send_json(["EVENT", subscription_id, event])
                if self.send_eose:
                    await ws.send_json(["EOSE", subscription_id])
            elif frame[0] == "CLOSE":
                self.closed_subscriptions.append(frame[1])
        return ws


@pytest_asyncio.fixture
async def relay():
    fake = FakeRelay()
    app = web.Application()
    app.router.add_get("/", fake.handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    fake.url = str(server.make_url("/"))
    yield fake
    await server.close()


@pytest.mark.asyncio
async def test_publish_then_fetch_round_trip(relay):
    content = b"chunked over a relay " * 10
    async with RelayClient(relay.url, signer=fake_signer) as client:
        publisher = Publisher(client, decoder=StaticDecoder(content), chunk_size=16)
        result = await publisher.publish("src", attach="parent-event")

        assert result.complete
        assert len(relay.events) == result.total
        assert all(len(o.result) == 64 for o in result.outcomes)
        assert result.messages[0].tags[0] == ("e", "parent-event", relay.url, "root")

        fetched = await client.fetch(chunk_filter(attach="parent-event"))

    assert len(fetched) == result.total
    assert all(m.event_id for m in fetched)
    assert reassemble(fetched).contents[result.key] == content
    assert len(relay.closed_subscriptions) == 1


@pytest.mark.asyncio
async def test_fetch_filters_by_hash(relay):
    async with RelayClient(relay.url, signer=async_signer) as client:
        publisher = Publisher(client, chunk_size=8)
        first = await publisher.publish(b"first file")
        await publisher.publish(b"second file")

        fetched = await client.fetch([chunk_filter(file_hash=first.file_hash)])

    result = reassemble(fetched)
    assert list(result.contents) == [first.key]


@pytest.mark.asyncio
async def test_rejected_events_become_publish_errors(relay):
    relay.reject = True
    async with RelayClient(relay.url, signer=fake_signer) as client:
        result = await Publisher(client, chunk_size=4).publish(b"rejected")

    assert result.failed_indices == list(range(result.total))
    assert all(isinstance(o.error, PublishError) for o in result.failed)
    assert all(isinstance(o.error.cause, RelayError) for o in result.failed)
    assert "blocked" in str(result.failed[0].error)


@pytest.mark.asyncio
async def test_publish_without_signer_raises_config_error(relay):
    client = RelayClient(relay.url)
    with pytest.raises(ConfigError):
        await client.publish(TaggedMessage(kind=BLOB, content="", tags=()))
    assert not client.connected


@pytest.mark.asyncio
async def test_signer_without_id_is_rejected(relay):
    async with RelayClient(relay.url, signer=lambda event: dict(event)) as client:
        with pytest.raises(RelayError):
            await client.publish(TaggedMessage(kind=BLOB, content="", tags=()))


@pytest.mark.asyncio
async def test_closed_subscription_raises(relay):
    relay.close_subscriptions = True
    async with RelayClient(relay.url) as client:
        with pytest.raises(RelayError, match="auth-required"):
            await client.fetch(chunk_filter())


@pytest.mark.asyncio
async def test_failed_close_keeps_subscription_error(relay):
    relay.close_subscriptions = True
    async with RelayClient(relay.url) as client:
        send = client._send

        async def drop_on_close(frame):
            if json.loads(frame)[0] == "CLOSE":
                raise ConnectionResetError("socket dropped")
            await send(frame)

        client._send = drop_on_close
        with pytest.raises(RelayError, match="auth-required"):
            await client.fetch(chunk_filter())


@pytest.mark.asyncio
async def test_fetch_without_eose_returns_after_timeout(relay):
    relay.send_eose = False
    async with RelayClient(relay.url, signer=fake_signer, timeout=0.3) as client:
        await Publisher(client, chunk_size=100).publish(b"no eose")
        fetched = await client.fetch(chunk_filter())

    assert len(fetched) == 1


@pytest.mark.asyncio
async def test_unreachable_relay_raises_relay_error(unused_tcp_port):
    client = RelayClient(f"ws://127.0.0.1:{unused_tcp_port}/", timeout=2)
    with pytest.raises(RelayError):
        await client.connect()
    await client.close()
