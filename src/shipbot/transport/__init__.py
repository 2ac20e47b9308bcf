"""
Shipbot Transport Layer

The dispatch loop only sees the abstract Transport; EyreTransport is the
implementation for a ship's HTTP channel interface.

Usage:
    from shipbot.transport import EyreTransport

    transport = EyreTransport(config.ship)
    await transport.connect()
    sub = await transport.open_subscription("graph-store", "/updates")
"""

from shipbot.transport.base import (
    AuthenticationError,
    Frame,
    PokeError,
    Subscription,
    SubscriptionError,
    Transport,
    TransportError,
)
from shipbot.transport.eyre import EyreTransport

__all__ = [
    "AuthenticationError",
    "EyreTransport",
    "Frame",
    "PokeError",
    "Subscription",
    "SubscriptionError",
    "Transport",
    "TransportError",
]
