"""Exception types raised by the bridge core."""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class PayloadParseError(BridgeError):
    """Payload is malformed, unsupported or carries no recognizable data."""


class UnknownEncodingError(BridgeError):
    """Configuration refers to an encoding without a decoder."""

    def __init__(self, encoding: str):
        super().__init__(f"Unknown payload encoding: '{encoding}'")
        self.encoding = encoding


class RegistryQueryError(BridgeError):
    """Device registry query for one application failed."""

    def __init__(self, app_id: str, message: str):
        super().__init__(f"Registry query for '{app_id}' failed: {message}")
        self.app_id = app_id


class SinkDeliveryError(BridgeError):
    """A sink could not accept a hand-off."""

    def __init__(self, sink_name: str, message: str):
        super().__init__(f"Sink '{sink_name}': {message}")
        self.sink_name = sink_name
