"""Home Assistant to MQTT Bridge Service - main orchestrator."""

import asyncio
import json
import logging
import signal
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from hass2mqtt.shared.logging import setup_logging

from .config import Config, load_config
from .errors import BrokerCommunicationError, SourceTransportError, WrongProtocolError
from .event_source import HassEventSource
from .mqtt_publisher import MQTTPublisher
from .router import EventRouter, log_inclusions

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    """Lifecycle phases of one bridge session."""
    IDLE = "idle"
    CONNECTING_BROKER = "connecting_broker"
    CONNECTING_SOURCE = "connecting_source"
    STREAMING = "streaming"
    ERRORED = "errored"
    CLOSING = "closing"


@dataclass
class Session:
    """One attempt at bridging Home Assistant to the broker."""
    publisher: MQTTPublisher
    source: HassEventSource
    phase: SessionPhase = SessionPhase.IDLE


class HassMQTTBridge:
    """Runs bridge sessions until told to stop, restarting them on failure."""

    def __init__(self, config: Config, log: Optional[logging.Logger] = None):
        """Initialize the bridge service.

        Args:
            config: Configuration object.
            log: Logger to use; defaults to this module's logger.
        """
        self.config = config
        self.log = log or logger
        self.session: Optional[Session] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        log_inclusions(config.inclusion, self.log)

    def _set_phase(self, session: Session, phase: SessionPhase):
        self.log.debug(f"Session {session.phase.value} -> {phase.value}")
        session.phase = phase

    def _new_session(self) -> Session:
        return Session(
            publisher=MQTTPublisher(self.config.mqtt, self.log),
            source=HassEventSource(self.config.hass, self.log),
        )

    async def run_once(self):
        """Run one session: connect broker, connect source, stream events.

        Session-fatal errors are logged here and the session is torn down.
        Errors outside the bridge's error categories propagate.
        """
        session = self._new_session()
        self.session = session
        retry_delay = 0.0

        try:
            self._set_phase(session, SessionPhase.CONNECTING_BROKER)
            if not await asyncio.to_thread(session.publisher.connect):
                self.log.error("Failed to connect to MQTT broker")
                return

            self._set_phase(session, SessionPhase.CONNECTING_SOURCE)
            await session.source.connect()

            self._set_phase(session, SessionPhase.STREAMING)
            router = EventRouter(
                session.publisher,
                self.config.mqtt.base_topic,
                self.config.inclusion,
                self.log,
            )
            async for raw in session.source.events():
                await router.route(raw)
            self.log.warning("Event stream ended")
        except BrokerCommunicationError as e:
            self._set_phase(session, SessionPhase.ERRORED)
            self.log.error(f"MQTT: {e}")
            self.log.debug("MQTT error details", exc_info=True)
        except WrongProtocolError as e:
            self._set_phase(session, SessionPhase.ERRORED)
            self.log.debug("Websocket error details", exc_info=True)
            self.log.info(f"Sleeping after websocket error {e}")
            retry_delay = self.config.websocket_error_sleep
        except SourceTransportError as e:
            self._set_phase(session, SessionPhase.ERRORED)
            self.log.debug("Websocket error details", exc_info=True)
            self.log.error(f"WebSocket: {e}")
        except json.JSONDecodeError as e:
            self._set_phase(session, SessionPhase.ERRORED)
            if e.pos == 0:
                self.log.info(f"JSON: {e}")
            else:
                self.log.error(f"JSON: {e}")
            self.log.debug("JSON error details", exc_info=True)
        finally:
            if session.phase is not SessionPhase.CONNECTING_BROKER:
                self._set_phase(session, SessionPhase.CLOSING)
                await session.source.close()
            # Also stops the network loop of a half-open or cancelled client.
            await asyncio.to_thread(session.publisher.disconnect)
            self._set_phase(session, SessionPhase.IDLE)

        if retry_delay > 0:
            await asyncio.sleep(retry_delay)

    async def run(self, stop_event: Optional[asyncio.Event] = None):
        """Repeat sessions until stop_event is set.

        The stop event is checked between sessions. A running session only
        ends on error or when the task is cancelled.
        """
        if stop_event is None:
            stop_event = asyncio.Event()
        self._stop_event = stop_event

        while not stop_event.is_set():
            self.log.info(f"Bridge running at: {datetime.now().astimezone().isoformat()}")
            await self.run_once()

        self.log.info("Bridge stopped.")

    def stop(self):
        """Ask the bridge to stop and cancel the session in progress."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            signame = signal.Signals(signum).name
            self.log.info(f"Received {signame}, shutting down...")
            self.stop()

        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops.
                signal.signal(signum, lambda s, frame: loop.call_soon_threadsafe(signal_handler, s))

    async def serve(self):
        """Run the bridge with signal handling (blocking)."""
        self._stop_event = asyncio.Event()
        self._setup_signal_handlers()
        self._task = asyncio.ensure_future(self.run(self._stop_event))
        try:
            await self._task
        except asyncio.CancelledError:
            self.log.info("Bridge stopped.")


def run_bridge(config_path: Optional[str] = None):
    """Run the Home Assistant to MQTT bridge service.

    Args:
        config_path: Optional path to config file.
    """
    config = load_config(config_path)
    setup_logging(config.log_level)

    logger.info("Starting Home Assistant to MQTT bridge...")

    bridge = HassMQTTBridge(config)

    try:
        asyncio.run(bridge.serve())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
