"""MQTT publisher for Home Assistant events."""

import asyncio
import logging
import threading
from typing import Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from hass2mqtt.shared.mqtt import MQTTConfig

from .errors import BrokerCommunicationError

logger = logging.getLogger(__name__)

# Events are published at least once; not configurable.
QOS_AT_LEAST_ONCE = 1


class MQTTPublisher:
    """Publishes raw event payloads to the MQTT broker with QoS 1."""

    def __init__(self, config: MQTTConfig, log: Optional[logging.Logger] = None):
        """Initialize MQTT publisher.

        Args:
            config: MQTT configuration.
            log: Logger to use; defaults to this module's logger.
        """
        self.config = config
        self.log = log or logger
        self.client: Optional[mqtt.Client] = None
        self._connected = False
        self._connect_event = threading.Event()
        self._connect_reason: Optional[str] = None
        # Serializes connect and disconnect, which run in worker threads.
        self._lock = threading.Lock()

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle connection to broker."""
        if reason_code == 0:
            self.log.info("MQTT connected")
            self._connected = True
        else:
            self._connect_reason = str(reason_code)
            self._connected = False
        self._connect_event.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        """Handle disconnection from broker."""
        self._connected = False
        if reason_code != 0:
            self.log.warning(f"Unexpected MQTT disconnection (reason={reason_code})")
        else:
            self.log.info("MQTT disconnected")

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.config.client_id,
            clean_session=True,
            protocol=mqtt.MQTTv311,
            reconnect_on_failure=False,  # the bridge restarts whole sessions
        )
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)
        if self.config.use_tls:
            client.tls_set()
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        return client

    def connect(self, timeout: float = 10.0) -> bool:
        """Connect to the MQTT broker.

        Args:
            timeout: Timeout in seconds to wait for connection.

        Returns:
            True if connected successfully, False otherwise.
        """
        with self._lock:
            return self._connect(timeout)

    def _connect(self, timeout: float) -> bool:
        self._connect_event.clear()
        self._connect_reason = None

        self.client = self._create_client()

        self.log.info(
            f"Connecting to {self.config.broker}:{self.config.port} "
            f"with client id {self.config.client_id}"
        )

        try:
            self.client.connect(
                self.config.broker, self.config.port, keepalive=self.config.keepalive
            )
            self.client.loop_start()

            # Wait for connection callback
            if self._connect_event.wait(timeout=timeout):
                if not self._connected:
                    self.log.error(f"MQTT connection failed: {self._connect_reason}")
                return self._connected
            else:
                self.log.error("Timeout waiting for MQTT connection")
                return False
        except (OSError, ValueError) as e:
            self.log.error(f"MQTT connection failed: {e}")
            return False

    def disconnect(self):
        """Disconnect from the MQTT broker. Safe to call when not connected.

        Waits for a connect still running in another thread, so a client
        created by it is always stopped.
        """
        with self._lock:
            if self.client:
                self.log.info("Disconnecting MQTT")
                self.client.disconnect()
                self.client.loop_stop()
                self.client = None
                self._connected = False

    async def publish(self, topic: str, payload: bytes) -> bool:
        """Publish a payload and wait for the broker's acknowledgement.

        Args:
            topic: MQTT topic.
            payload: Raw bytes, sent unmodified.

        Returns:
            True if the broker acknowledged the message.

        Raises:
            BrokerCommunicationError: If the broker connection is gone.
        """
        if not self._connected or not self.client:
            raise BrokerCommunicationError(f"Not connected to MQTT broker, cannot publish {topic}")

        self.log.info(f"Publishing {topic}")
        result = self.client.publish(topic, payload, qos=QOS_AT_LEAST_ONCE)
        if result.rc == mqtt.MQTT_ERR_NO_CONN:
            raise BrokerCommunicationError(f"Lost MQTT connection publishing {topic}")
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.log.error(f"Publish failed: {mqtt.error_string(result.rc)}")
            return False

        await asyncio.to_thread(result.wait_for_publish, self.config.publish_timeout)
        if not result.is_published():
            if not self._connected:
                raise BrokerCommunicationError(f"Lost MQTT connection publishing {topic}")
            self.log.error(f"Publish failed: no acknowledgement for {topic}")
            return False

        self.log.debug(f"Published {len(payload)} bytes to {topic}")
        return True

    @property
    def is_connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected
