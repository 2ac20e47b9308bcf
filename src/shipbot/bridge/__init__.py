"""
Shipbot Bridge — the update multiplexer and side-effect dispatcher.

    frames ─▶ decode_frame ─▶ InviteHandler            ─▶ join + ack
                           ─▶ ResourceDiscoveryHandler ─▶ JoinExecutor
                           ─▶ MessageRouter            ─▶ Responder ─▶ post

DispatchLoop ties them together; see shipbot.bridge.loop.
"""

from shipbot.bridge.decoder import (
    DomainEvent,
    GraphUpdate,
    InviteUpdate,
    MetadataUpdate,
    Unrecognized,
    decode_frame,
)
from shipbot.bridge.handlers import InviteHandler, InviteOutcome, ResourceDiscoveryHandler
from shipbot.bridge.identity import BridgeIdentity, is_self_authored
from shipbot.bridge.joins import JoinExecutor, JoinIntent
from shipbot.bridge.loop import CycleReport, DispatchLoop, LoopState, StreamSpec
from shipbot.bridge.router import MessageRouter

__all__ = [
    "BridgeIdentity",
    "CycleReport",
    "DispatchLoop",
    "DomainEvent",
    "GraphUpdate",
    "InviteHandler",
    "InviteOutcome",
    "InviteUpdate",
    "JoinExecutor",
    "JoinIntent",
    "LoopState",
    "MessageRouter",
    "MetadataUpdate",
    "ResourceDiscoveryHandler",
    "StreamSpec",
    "Unrecognized",
    "decode_frame",
    "is_self_authored",
]
