"""Session-fatal error categories raised by the bridge components."""


class BridgeError(Exception):
    """Base class for errors that end a bridge session."""


class BrokerCommunicationError(BridgeError):
    """The MQTT broker connection failed while connecting or publishing."""


class SourceTransportError(BridgeError):
    """The Home Assistant websocket failed."""


class WrongProtocolError(SourceTransportError):
    """The endpoint is not speaking the websocket text protocol."""


class SourceClosedError(SourceTransportError):
    """The websocket was closed or reported an error frame."""


class HandshakeTimeoutError(SourceTransportError):
    """The auth/subscribe handshake did not finish before its deadline."""
