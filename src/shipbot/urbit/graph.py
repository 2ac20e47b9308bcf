"""
Graph-store and group payload builders.

Everything the bridge sends to the ship is built here:
- graph post nodes (chat replies) keyed by a ship date index
- group join requests (invite acceptance)
- graph join requests (joining a discovered chat)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from shipbot.urbit.message import Message
from shipbot.urbit.resource import Resource

# Ship dates (@da) count 2^-64 second ticks from a fixed epoch.
DA_UNIX_EPOCH = 170141184475152167957503069145530368000
DA_SECOND = 18446744073709551616

GRAPH_APP = "graph"  # metadata app-name of chats
GRAPH_UPDATE_MARK = "graph-update-3"
GRAPH_PUSH_HOOK = "graph-push-hook"
GROUP_VIEW_APP = "group-view"
GROUP_VIEW_MARK = "group-view-action"


def unix_ms_to_da(unix_ms: int) -> int:
    return DA_UNIX_EPOCH + (unix_ms * DA_SECOND) // 1000


def format_time_sent(unix_ms: int) -> str:
    """Render a post's ``time-sent`` as "YYYY-MM-DD HH:MM:SS" in UTC."""
    sent = datetime.fromtimestamp(unix_ms / 1000, tz=timezone.utc)
    return sent.strftime("%Y-%m-%d %H:%M:%S")


def build_post_node(author: str, message: Message, unix_ms: int | None = None) -> tuple[str, dict]:
    """Return ``(index, node)`` for a new top-level chat post."""
    if unix_ms is None:
        unix_ms = int(time.time() * 1000)
    index = f"/{unix_ms_to_da(unix_ms)}"
    node = {
        "post": {
            "author": author,
            "index": index,
            "time-sent": unix_ms,
            "contents": message.to_json(),
            "hash": None,
            "signatures": [],
        },
        "children": None,
    }
    return index, node


def build_add_nodes(
    resource: Resource, author: str, message: Message, unix_ms: int | None = None
) -> dict:
    """The graph-update poke that posts ``message`` into ``resource``."""
    index, node = build_post_node(author, message, unix_ms)
    return {
        "add-nodes": {
            "resource": resource.to_json(),
            "nodes": {index: node},
        }
    }


@dataclass(frozen=True)
class JoinRequest:
    """A request to join ``resource``.

    Group joins (invite acceptance) carry ``app``/``autojoin``/``share_contact``;
    graph joins only need the resource and its host.
    """

    resource: Resource
    app: str = "groups"
    autojoin: bool = True
    share_contact: bool = True

    @property
    def host(self) -> str:
        return self.resource.ship

    def to_group_join(self) -> dict:
        """group-view-action payload used to accept an invite."""
        return {
            "join": {
                "resource": self.resource.to_json(),
                "ship": self.host,
                "app": self.app,
                "autojoin": self.autojoin,
                "shareContact": self.share_contact,
            }
        }

    def to_graph_join(self) -> dict:
        """graph-view-action payload for the graph-join thread."""
        return {
            "join": {
                "resource": self.resource.to_json(),
                "ship": self.host,
            }
        }
