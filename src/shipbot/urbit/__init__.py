"""Ship-side value types: resources, chat messages and graph payloads."""

from shipbot.urbit.graph import JoinRequest
from shipbot.urbit.message import AuthoredMessage, Message, OutboundMessage
from shipbot.urbit.resource import Resource, normalize_ship

__all__ = [
    "AuthoredMessage",
    "JoinRequest",
    "Message",
    "OutboundMessage",
    "Resource",
    "normalize_ship",
]
