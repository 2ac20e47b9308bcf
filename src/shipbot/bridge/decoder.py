"""
Event Decoder — raw frames to typed domain events.

Every frame popped from a subscription goes through decode_frame(), which
never raises. Anything that is not valid JSON, is not one of the known
update shapes, or is missing a field we rely on becomes Unrecognized, so
one bad frame can never stop the rest of a drain.

Known shapes (field names are the ship's, not ours):

    {"graph-update": {"add-nodes": {"resource": {"ship", "name"},
                                    "nodes": {"/<index>": {"post": {...}}}}}}
    {"invite-update": {"invite": {"invite": {"resource": {"ship", "name"}}}}}
    {"invite-update": {"invite": null}}            # store notification
    {"metadata-update": {"add": {...}}}
    {"metadata-update": {"associations": {"<key>": {...}, ...}}}
    {"metadata-update": {"remove": {...}}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from shipbot.transport.base import Frame
from shipbot.urbit.graph import GRAPH_APP, format_time_sent
from shipbot.urbit.message import Message
from shipbot.urbit.resource import Resource, normalize_ship

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """A frame did not match the shape it claimed to have."""


# ─── Domain Events ───────────────────────────────────────────────


@dataclass(frozen=True)
class GraphUpdate:
    """A new post in a chat."""

    frame_id: int
    resource: Resource  # the chat the post was made in
    author: str
    contents: Message
    time_sent: int  # unix ms
    index: str

    @property
    def time_sent_formatted(self) -> str:
        return format_time_sent(self.time_sent)


@dataclass(frozen=True)
class InviteUpdate:
    """An invite-store update; ``resource`` is None for plain notifications."""

    frame_id: int
    resource: Optional[Resource] = None
    inviter: Optional[str] = None
    text: str = ""

    @property
    def is_invite(self) -> bool:
        return self.resource is not None


@dataclass(frozen=True)
class MetadataUpdate:
    """Chats that appeared (add / associations) or went away (remove)."""

    frame_id: int
    added: Optional[Resource] = None
    associations: tuple[Resource, ...] = ()
    removed: Optional[dict] = field(default=None, compare=False)


@dataclass(frozen=True)
class Unrecognized:
    frame_id: int
    reason: str


DomainEvent = Union[GraphUpdate, InviteUpdate, MetadataUpdate, Unrecognized]


# ─── Decoding ────────────────────────────────────────────────────


def decode_frame(frame: Frame) -> DomainEvent:
    """Decode one frame. Never raises."""
    try:
        document = json.loads(frame.data)
    except (TypeError, ValueError) as e:
        return Unrecognized(frame.id, f"invalid JSON: {e}")
    if not isinstance(document, dict):
        return Unrecognized(frame.id, "not a JSON object")

    try:
        if "graph-update" in document:
            return decode_graph_update(frame.id, document["graph-update"])
        if "invite-update" in document:
            return decode_invite_update(frame.id, document["invite-update"])
        if "metadata-update" in document:
            return decode_metadata_update(frame.id, document["metadata-update"])
    except DecodeError as e:
        return Unrecognized(frame.id, str(e))
    except ValueError as e:
        # Resource/ship validation
        return Unrecognized(frame.id, f"invalid value: {e}")

    keys = ", ".join(sorted(document)) or "none"
    return Unrecognized(frame.id, f"unknown update (keys: {keys})")


def decode_graph_update(frame_id: int, update: object) -> GraphUpdate:
    add_nodes = _object(_object(update, "graph-update").get("add-nodes"), "add-nodes")
    resource = Resource.from_json(add_nodes.get("resource"))

    nodes = _object(add_nodes.get("nodes"), "nodes")
    if not nodes:
        raise DecodeError("add-nodes carries no nodes")
    if len(nodes) > 1:
        logger.debug("add-nodes with %d nodes, using the first", len(nodes))
    node = _object(next(iter(nodes.values())), "node")
    post = _object(node.get("post"), "post")

    author = post.get("author")
    index = post.get("index")
    time_sent = post.get("time-sent")
    if not isinstance(author, str):
        raise DecodeError("post author missing")
    if not isinstance(index, str):
        raise DecodeError("post index missing")
    if isinstance(time_sent, bool) or not isinstance(time_sent, int):
        raise DecodeError("post time-sent missing")
    try:
        format_time_sent(time_sent)
    except (OverflowError, OSError, ValueError) as e:
        raise DecodeError(f"post time-sent out of range: {time_sent}") from e

    return GraphUpdate(
        frame_id=frame_id,
        resource=resource,
        author=normalize_ship(author),
        contents=Message.from_json(post.get("contents")),
        time_sent=time_sent,
        index=index,
    )


def decode_invite_update(frame_id: int, update: object) -> InviteUpdate:
    update = _object(update, "invite-update")
    outer = update.get("invite")
    if outer is None:
        return InviteUpdate(frame_id=frame_id)

    invite = _object(_object(outer, "invite").get("invite"), "invite.invite")
    inviter = invite.get("ship")
    text = invite.get("text")
    return InviteUpdate(
        frame_id=frame_id,
        resource=Resource.from_json(invite.get("resource")),
        inviter=normalize_ship(inviter) if isinstance(inviter, str) and inviter else None,
        text=text if isinstance(text, str) else "",
    )


def decode_metadata_update(frame_id: int, update: object) -> MetadataUpdate:
    update = _object(update, "metadata-update")
    if not any(key in update for key in ("add", "associations", "remove")):
        keys = ", ".join(sorted(update)) or "none"
        raise DecodeError(f"metadata-update without add/associations/remove ({keys})")

    added = None
    if "add" in update:
        added = joinable_chat(update["add"])

    associations = []
    if "associations" in update:
        for key, entry in _object(update["associations"], "associations").items():
            resource = joinable_chat(entry, key)
            if resource is not None:
                associations.append(resource)

    removed = update.get("remove")
    return MetadataUpdate(
        frame_id=frame_id,
        added=added,
        associations=tuple(associations),
        removed=removed if isinstance(removed, dict) else None,
    )


def joinable_chat(entry: object, key: str = "add") -> Optional[Resource]:
    """The chat an association names, or None when it is not a joinable chat.

    Accepts the flat form {"app-name": "graph", "resource": "/ship/~x/c"} and
    the nested form {"resource": {"app-name": "graph", "resource": "/ship/~x/c"}}.
    A malformed path is skipped with a warning instead of failing the update.
    """
    if not isinstance(entry, dict):
        return None
    app_name = entry.get("app-name")
    path = entry.get("resource")
    if isinstance(path, dict):
        app_name = path.get("app-name", app_name)
        path = path.get("resource")
    if app_name != GRAPH_APP or not isinstance(path, str):
        return None
    try:
        return Resource.from_path(path)
    except ValueError as e:
        logger.warning("Skipping association %s: %s", key, e)
        return None


def _object(value: object, what: str) -> dict:
    if not isinstance(value, dict):
        raise DecodeError(f"{what} is not an object")
    return value
