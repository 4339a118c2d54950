"""Payload encoding identifiers, as used in the application configuration."""
from enum import Enum

from bridge.errors import UnknownEncodingError


class PayloadEncoding(Enum):
    """Enumeration of supported uplink payload encodings."""
    TTN_ULM = "ttnulm"
    SPS30 = "sps30"
    CAYENNE = "cayenne"
    JSON = "json"

    @classmethod
    def from_id(cls, encoding_id: str) -> "PayloadEncoding":
        """Look up an encoding by its configuration id (case-insensitive)."""
        for encoding in cls:
            if encoding.value == str(encoding_id).strip().lower():
                return encoding
        raise UnknownEncodingError(encoding_id)
