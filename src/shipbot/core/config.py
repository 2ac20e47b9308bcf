"""
Shipbot Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (a local .env is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _parse_chats(raw: str) -> tuple[str, ...]:
    """Split "~host/name,~host/other" into normalised "~host/name" entries."""
    chats = []
    for item in raw.split(","):
        item = item.strip().strip("/")
        if not item:
            continue
        if not item.startswith("~"):
            item = f"~{item}"
        chats.append(item)
    return tuple(chats)


@dataclass(frozen=True)
class ShipConfig:
    """Connection settings for the ship's HTTP interface."""

    url: str = "http://localhost:8080"
    code: str = ""  # +code access key
    ship: str = ""  # empty = derive from the login cookie
    request_timeout: float = 30.0
    poke_timeout: float = 10.0
    thread_desk: str = "landscape"  # desk hosting the graph-join thread
    # Event stream reconnection
    reconnect_attempts: int = 5
    reconnect_delay: float = 1.0  # seconds, doubles each attempt

    @classmethod
    def from_env(cls) -> ShipConfig:
        return cls(
            url=os.getenv("SHIPBOT_URL", "http://localhost:8080").rstrip("/"),
            code=os.getenv("SHIPBOT_CODE", ""),
            ship=os.getenv("SHIPBOT_SHIP", ""),
            request_timeout=float(os.getenv("SHIPBOT_REQUEST_TIMEOUT", "30.0")),
            poke_timeout=float(os.getenv("SHIPBOT_POKE_TIMEOUT", "10.0")),
            thread_desk=os.getenv("SHIPBOT_THREAD_DESK", "landscape"),
            reconnect_attempts=int(os.getenv("SHIPBOT_RECONNECT_ATTEMPTS", "5")),
            reconnect_delay=float(os.getenv("SHIPBOT_RECONNECT_DELAY", "1.0")),
        )


@dataclass(frozen=True)
class BridgeConfig:
    """Dispatch loop settings."""

    poll_interval: float = 0.5  # fixed pause between cycles
    join_spacing: float = 0.5  # pause after each graph join
    watched_chats: tuple[str, ...] = ()  # empty = answer in every chat

    @classmethod
    def from_env(cls) -> BridgeConfig:
        return cls(
            poll_interval=float(os.getenv("SHIPBOT_POLL_INTERVAL", "0.5")),
            join_spacing=float(os.getenv("SHIPBOT_JOIN_SPACING", "0.5")),
            watched_chats=_parse_chats(os.getenv("SHIPBOT_CHATS", "")),
        )


@dataclass(frozen=True)
class ShipbotConfig:
    """Root configuration."""

    ship: ShipConfig = field(default_factory=ShipConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)

    @classmethod
    def from_env(cls) -> ShipbotConfig:
        return cls(
            ship=ShipConfig.from_env(),
            bridge=BridgeConfig.from_env(),
        )
