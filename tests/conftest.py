"""Shared fixtures and fakes for the bridge tests."""

import asyncio
import base64
import hashlib
import threading
from types import SimpleNamespace

import aiohttp
import pytest

from hass2mqtt.bridge.config import Config, HassConfig
from hass2mqtt.bridge.inclusion import Inclusion
from hass2mqtt.shared.mqtt import MQTTConfig

ENV_VARS = [
    "MQTT_SERVER",
    "MQTT_PORT",
    "MQTT_CLIENT_ID",
    "MQTT_USE_TLS",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_BASE_TOPIC",
    "HASS_SERVER_URI",
    "HASS_ADMIN_TOKEN",
    "CANCEL_AFTER",
    "INCLUSION_ENTITIES",
    "LOG_LEVEL",
    "HASS2MQTT_CONFIG",
]


def text(data: str):
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data, extra=None)


def binary(data: bytes):
    return SimpleNamespace(type=aiohttp.WSMsgType.BINARY, data=data, extra=None)


def close():
    return SimpleNamespace(type=aiohttp.WSMsgType.CLOSE, data=1000, extra=None)


class FakeWebSocket:
    """Scripted stand-in for aiohttp.ClientWebSocketResponse.

    Plain strings are delivered as text messages. Once the script runs out,
    receive() blocks forever.
    """

    def __init__(self, messages=(), exception=None):
        self.messages = list(messages)
        self.sent = []
        self.closed = False
        self.close_code = None
        self._exception = exception

    async def receive(self):
        if not self.messages:
            await asyncio.Event().wait()
        msg = self.messages.pop(0)
        if isinstance(msg, str):
            return text(msg)
        return msg

    async def send_str(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True
        self.close_code = 1000

    def exception(self):
        return self._exception


class FakeClientSession:
    """Stand-in for aiohttp.ClientSession that hands out one websocket."""

    def __init__(self, ws=None, error=None):
        self.ws = ws
        self.error = error
        self.url = None
        self.kwargs = None
        self.closed = False

    async def ws_connect(self, url, **kwargs):
        self.url = url
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.ws

    async def close(self):
        self.closed = True


class FakePublisher:
    """Records publishes in order instead of talking to a broker."""

    def __init__(self, connect_result=True, publish_error=None):
        self.connect_result = connect_result
        self.publish_error = publish_error
        self.published = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.disconnect_threads = []

    def connect(self, timeout=10.0):
        self.connect_calls += 1
        return self.connect_result

    def disconnect(self):
        self.disconnect_calls += 1
        self.disconnect_threads.append(threading.get_ident())

    async def publish(self, topic, payload):
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, payload))
        return True


WS_GUID = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
OP_CONTINUATION = 0x0
OP_TEXT = 0x1
OP_CLOSE = 0x8


def ws_frame(opcode: int, payload: bytes, fin: bool = True) -> bytes:
    """Encode one unmasked server-to-client frame."""
    head = bytes([(0x80 if fin else 0x00) | opcode])
    length = len(payload)
    if length < 126:
        head += bytes([length])
    elif length < 1 << 16:
        head += bytes([126]) + length.to_bytes(2, "big")
    else:
        head += bytes([127]) + length.to_bytes(8, "big")
    return head + payload


def fragmented_text(payload: bytes, size: int) -> bytes:
    """Split a text message into a text frame plus continuation frames."""
    chunks = [payload[i:i + size] for i in range(0, len(payload), size)]
    return b"".join(
        ws_frame(OP_TEXT if i == 0 else OP_CONTINUATION, chunk, fin=i == len(chunks) - 1)
        for i, chunk in enumerate(chunks)
    )


class WebSocketServer:
    """Websocket server on a local port that writes hand-built frames.

    After the upgrade, ``script(server, reader, writer)`` drives the
    conversation. The server then answers the client's close frame.
    Text frames read with ``receive`` are kept in ``received``.
    """

    def __init__(self, script=None, upgrade=True):
        self.script = script
        self.upgrade = upgrade
        self.request_line = None
        self.received = []
        self.port = None
        self._server = None

    @property
    def uri(self) -> str:
        return f"ws://127.0.0.1:{self.port}/api/websocket"

    async def __aenter__(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._server.close()
        await self._server.wait_closed()

    async def read_frame(self, reader):
        head = await reader.readexactly(2)
        opcode = head[0] & 0x0F
        length = head[1] & 0x7F
        if length == 126:
            length = int.from_bytes(await reader.readexactly(2), "big")
        elif length == 127:
            length = int.from_bytes(await reader.readexactly(8), "big")
        mask = await reader.readexactly(4) if head[1] & 0x80 else b""
        payload = await reader.readexactly(length)
        if mask:
            payload = bytes(b ^ mask[i % 4] for i, b in enumerate(payload))
        return opcode, payload

    async def receive(self, reader):
        opcode, payload = await self.read_frame(reader)
        if opcode == OP_TEXT:
            self.received.append(payload.decode("utf-8"))
        return opcode, payload

    async def _handle(self, reader, writer):
        try:
            request = await reader.readuntil(b"\r\n\r\n")
            lines = request.decode("latin-1").split("\r\n")
            self.request_line = lines[0]
            if not self.upgrade:
                writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
                await writer.drain()
                return

            headers = dict(
                (name.strip().lower(), value.strip())
                for name, _, value in (line.partition(":") for line in lines[1:] if line)
            )
            key = headers["sec-websocket-key"].encode("ascii")
            accept = base64.b64encode(hashlib.sha1(key + WS_GUID).digest())
            writer.write(
                b"HTTP/1.1 101 Switching Protocols\r\n"
                b"Upgrade: websocket\r\n"
                b"Connection: Upgrade\r\n"
                b"Sec-WebSocket-Accept: " + accept + b"\r\n\r\n"
            )
            await writer.drain()

            if self.script is not None:
                await self.script(self, reader, writer)

            while True:
                opcode, payload = await self.read_frame(reader)
                if opcode == OP_CLOSE:
                    writer.write(ws_frame(OP_CLOSE, payload[:2]))
                    await writer.drain()
                    return
        except (asyncio.IncompleteReadError, ConnectionError):
            # Client went away without a close handshake.
            return
        finally:
            writer.close()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove bridge settings from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def hass_config():
    return HassConfig(
        server_uri="ws://hass.test:8123/api/websocket",
        admin_token="secret-token",
    )


@pytest.fixture
def bridge_config(hass_config):
    return Config(
        mqtt=MQTTConfig(broker="broker.test", base_topic="HA"),
        hass=hass_config,
        inclusion=Inclusion(),
        websocket_error_sleep=0.05,
    )
