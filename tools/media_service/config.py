"""Environment-driven configuration for the media decrypt service."""

from __future__ import annotations

import os
from dataclasses import dataclass

from wadecrypt.defaults.config import DEFAULT_SERVICE_CONFIG

_FALSY = {"", "0", "false", "False", "no", "off"}


@dataclass
class ServiceConfig:
    api_key: str | None = None
    host: str = DEFAULT_SERVICE_CONFIG["host"]
    port: int = DEFAULT_SERVICE_CONFIG["port"]
    fetch_timeout_s: float = DEFAULT_SERVICE_CONFIG["fetch_timeout"]
    cache_ttl_s: float = DEFAULT_SERVICE_CONFIG["cache_ttl"]
    cache_max_entries: int = DEFAULT_SERVICE_CONFIG["cache_max_entries"]
    strict: bool = DEFAULT_SERVICE_CONFIG["strict"]
    accept_iv_prefixed_mac: bool = DEFAULT_SERVICE_CONFIG["accept_iv_prefixed_mac"]
    debug: bool = DEFAULT_SERVICE_CONFIG["debug"]


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() not in _FALSY


def config_from_env() -> ServiceConfig:
    return ServiceConfig(
        api_key=os.getenv("WADECRYPT_API_KEY") or os.getenv("API_KEY"),
        host=os.getenv("WADECRYPT_HOST", DEFAULT_SERVICE_CONFIG["host"]),
        port=int(os.getenv("WADECRYPT_PORT", os.getenv("PORT", str(DEFAULT_SERVICE_CONFIG["port"])))),
        fetch_timeout_s=float(os.getenv("WADECRYPT_FETCH_TIMEOUT", str(DEFAULT_SERVICE_CONFIG["fetch_timeout"]))),
        cache_ttl_s=float(os.getenv("WADECRYPT_CACHE_TTL", str(DEFAULT_SERVICE_CONFIG["cache_ttl"]))),
        cache_max_entries=int(os.getenv("WADECRYPT_CACHE_MAX", str(DEFAULT_SERVICE_CONFIG["cache_max_entries"]))),
        strict=_flag("WADECRYPT_STRICT", DEFAULT_SERVICE_CONFIG["strict"]),
        accept_iv_prefixed_mac=_flag(
            "WADECRYPT_ACCEPT_IV_MAC", DEFAULT_SERVICE_CONFIG["accept_iv_prefixed_mac"]
        ),
        debug=_flag("WADECRYPT_DEBUG", os.getenv("NODE_ENV") == "development"),
    )
