"""Default media-crypto constants and service configuration values."""

MEDIA_KEY_SIZE = 32
MEDIA_KEY_EXPANSION_SIZE = 112
MAC_TAG_SIZE = 10
AES_BLOCK_SIZE = 16
IV_SIZE = 16
CIPHER_KEY_SIZE = 32
MAC_KEY_SIZE = 32

MEDIA_KEY_INFO_TEMPLATE = "WhatsApp {label} Keys"

FETCH_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

DEFAULT_SERVICE_CONFIG = {
    "host": "0.0.0.0",
    "port": 3000,
    "fetch_timeout": 30.0,
    "cache_ttl": 600.0,
    "cache_max_entries": 64,
    "strict": False,
    "accept_iv_prefixed_mac": False,
    "debug": False,
}
