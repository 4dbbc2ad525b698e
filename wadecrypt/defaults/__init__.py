"""Default constants and configuration values for wadecrypt."""

from .config import DEFAULT_SERVICE_CONFIG, MAC_TAG_SIZE, MEDIA_KEY_EXPANSION_SIZE

__all__ = ["DEFAULT_SERVICE_CONFIG", "MAC_TAG_SIZE", "MEDIA_KEY_EXPANSION_SIZE"]
