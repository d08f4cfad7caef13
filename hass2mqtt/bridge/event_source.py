"""Home Assistant websocket event source.

Connects to the Home Assistant websocket API, performs the auth and
subscribe handshake, then streams every ``state_changed`` event as the raw
bytes of its text message.

The handshake is three request/response steps:

1. receive the ``auth_required`` greeting;
2. send ``{"type":"auth","access_token":...}`` and receive the auth result;
3. send ``{"id":1,"type":"subscribe_events","event_type":"state_changed"}``
   and receive the subscription result.

Responses are logged but not checked. An auth failure shows up later as the
server closing the socket.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Callable, Optional

import aiohttp

from .config import HassConfig
from .errors import (
    HandshakeTimeoutError,
    SourceClosedError,
    SourceTransportError,
    WrongProtocolError,
)

logger = logging.getLogger(__name__)

SUBSCRIBE_ID = 1
SUBSCRIBE_EVENT_TYPE = "state_changed"

_CLOSED_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
)


def _encode(message: dict) -> str:
    return json.dumps(message, separators=(",", ":"))


class HassEventSource:
    """Owns one websocket connection to Home Assistant."""

    def __init__(
        self,
        config: HassConfig,
        log: Optional[logging.Logger] = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ):
        """Initialize the event source.

        Args:
            config: Home Assistant connection settings.
            log: Logger to use; defaults to this module's logger.
            session_factory: Creates the HTTP session the websocket runs on.
        """
        self.config = config
        self.log = log or logger
        self._session_factory = session_factory
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self):
        """Open the websocket and run the handshake within its deadline.

        Raises:
            HandshakeTimeoutError: If the deadline passes first.
            WrongProtocolError: If the server is not a websocket endpoint.
            SourceTransportError: On any other connection failure.
        """
        timeout = self.config.handshake_timeout
        if timeout is None:
            await self._connect_and_handshake()
            return
        try:
            await asyncio.wait_for(self._connect_and_handshake(), timeout)
        except asyncio.TimeoutError as e:
            raise HandshakeTimeoutError(
                f"Handshake with {self.config.server_uri} not finished "
                f"after {self.config.cancel_after} ms"
            ) from e

    async def _connect_and_handshake(self):
        uri = self.config.server_uri
        self.log.debug(f"HASS URL: {uri}")

        self._session = self._session_factory()
        try:
            self._ws = await self._session.ws_connect(
                uri, max_msg_size=self.config.max_msg_size
            )
        except aiohttp.WSServerHandshakeError as e:
            raise WrongProtocolError(
                f"{uri} is not a websocket endpoint ({e.status} {e.message})"
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            raise SourceTransportError(f"Could not connect to {uri}: {e}") from e

        greeting = await self._receive()
        self.log.info(greeting)

        await self._send({"type": "auth", "access_token": self.config.admin_token})
        auth_result = await self._receive()
        self.log.info(auth_result)

        await self._send({
            "id": SUBSCRIBE_ID,
            "type": "subscribe_events",
            "event_type": SUBSCRIBE_EVENT_TYPE,
        })
        subscribe_result = await self._receive()
        self.log.info(subscribe_result)

    async def _send(self, message: dict):
        if self._ws is None:
            raise SourceClosedError("Websocket is not connected")
        self.log.debug(f"Sending {message['type']} message")
        try:
            await self._ws.send_str(_encode(message))
        except (aiohttp.ClientError, OSError) as e:
            raise SourceTransportError(f"Websocket send failed: {e}") from e

    async def _receive(self) -> str:
        """Receive one complete text message.

        aiohttp joins continuation frames until the final frame, so a
        partial message is never returned.
        """
        if self._ws is None:
            raise SourceClosedError("Websocket is not connected")
        try:
            msg = await self._ws.receive()
        except (aiohttp.ClientError, OSError) as e:
            raise SourceTransportError(f"Websocket receive failed: {e}") from e

        if msg.type == aiohttp.WSMsgType.TEXT:
            self.log.debug(f"WS message: {msg.data}")
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            raise WrongProtocolError("Received binary websocket message, expected text")
        if msg.type in _CLOSED_TYPES:
            raise SourceClosedError(f"Websocket closed (code={self._ws.close_code})")
        if msg.type == aiohttp.WSMsgType.ERROR:
            exc = self._ws.exception()
            if (
                isinstance(exc, aiohttp.WebSocketError)
                and exc.code == aiohttp.WSCloseCode.PROTOCOL_ERROR
            ):
                raise WrongProtocolError(f"Websocket protocol error: {exc}") from exc
            raise SourceClosedError(f"Websocket error: {exc}") from exc
        raise WrongProtocolError(f"Unexpected websocket message type {msg.type!r}")

    async def events(self) -> AsyncIterator[bytes]:
        """Yield each received message as UTF-8 bytes, until the transport fails."""
        while True:
            text = await self._receive()
            yield text.encode("utf-8")

    async def close(self):
        """Close the websocket and its HTTP session. Safe to call repeatedly."""
        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError) as e:
                self.log.debug(f"Error closing websocket: {e}")
        if session is not None:
            await session.close()

    async def __aenter__(self) -> "HassEventSource":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
