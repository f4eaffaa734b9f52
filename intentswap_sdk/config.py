"""
Configuration for the IntentSwap SDK.

``SwapConfig`` holds the timing knobs of a swap flow; ``NetworkConfig`` serves
the chain definitions bundled in ``networks.json``.
"""
import json
import os
import importlib.resources
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3001"

INTENT_EXPIRY_MS = 5 * 60 * 1000
TX_CONFIRMATION_TIMEOUT = 120.0
TX_POLL_INTERVAL = 5.0
FULFILLMENT_TIMEOUT = 5 * 60.0
FULFILLMENT_POLL_INTERVAL = 2.0
STATUS_RESET_DELAY = 3.0
DEFAULT_SLIPPAGE_BPS = 50
DEFAULT_HISTORY_LIMIT = 50


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got: {raw!r}")
    return value


@dataclass
class SwapConfig:
    """Timing and endpoint settings for a swap flow. Durations are in seconds."""
    api_url: str = DEFAULT_API_URL
    confirmation_timeout: float = TX_CONFIRMATION_TIMEOUT
    confirmation_poll_interval: float = TX_POLL_INTERVAL
    fulfillment_timeout: float = FULFILLMENT_TIMEOUT
    fulfillment_poll_interval: float = FULFILLMENT_POLL_INTERVAL
    status_reset_delay: float = STATUS_RESET_DELAY
    intent_expiry_ms: int = INTENT_EXPIRY_MS
    default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    request_timeout: float = 30
    retry_count: int = 3
    max_workers: int = 4

    @classmethod
    def from_env(cls) -> "SwapConfig":
        """
        Build a config from ``INTENTSWAP_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable holds a malformed value
        """
        poll_interval = _env_float("INTENTSWAP_POLL_INTERVAL", TX_POLL_INTERVAL)
        return cls(
            api_url=os.environ.get("INTENTSWAP_API_URL", DEFAULT_API_URL).rstrip("/"),
            confirmation_timeout=_env_float("INTENTSWAP_CONFIRMATION_TIMEOUT", TX_CONFIRMATION_TIMEOUT),
            confirmation_poll_interval=poll_interval,
            fulfillment_timeout=_env_float("INTENTSWAP_FULFILLMENT_TIMEOUT", FULFILLMENT_TIMEOUT),
            status_reset_delay=_env_float("INTENTSWAP_STATUS_RESET_DELAY", STATUS_RESET_DELAY),
            request_timeout=_env_float("INTENTSWAP_REQUEST_TIMEOUT", 30),
        )


class NetworkConfig:
    """Chain definitions loaded once from the packaged ``networks.json``."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None
    _lock = threading.RLock()

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        with cls._lock:
            if cls._networks_cache is None:
                text = importlib.resources.files("intentswap_sdk").joinpath("networks.json").read_text()
                cls._networks_cache = json.loads(text)
                logger.debug(f"Loaded {len(cls._networks_cache)} network definitions")
            return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Get the definition of one network.

        Raises:
            ValueError: If the network is not defined
        """
        name = str(getattr(name, "value", name))
        networks = cls.load_networks()
        if name not in networks:
            raise ValueError(f"Unknown network: {name}. Available: {', '.join(sorted(networks))}")
        return networks[name]

    @classmethod
    def tx_url(cls, name: str, tx_hash: str) -> str:
        """Block explorer URL for a transaction, honoring the explorer env override."""
        network = cls.get_network(name)
        base = os.environ.get(network["explorerEnv"], network["explorer"]).rstrip("/")
        return base + network["txPath"].format(tx_hash=tx_hash)
