"""
Base Transport Interface — abstract base class for ship connections.

The dispatch loop only talks to a ship through this interface:

    sub = await transport.open_subscription("graph-store", "/updates")
    frame = transport.poll_next_frame(sub)     # Frame | None, never blocks
    await transport.send_poke(app, mark, payload)
    await transport.send_join(request)
    await transport.send_ack(sub, frame.id)
    await transport.post_chat_message(resource, message)

Buffering:
- Each Subscription owns its own asyncio.Queue (no cross-talk)
- Implementations push frames with _deliver(); put_nowait never blocks
  the reader, a full queue drops the frame with a warning
- poll_next_frame() is get_nowait() on that queue

All failures surface as TransportError subclasses.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from shipbot.urbit.graph import (
    GRAPH_PUSH_HOOK,
    GRAPH_UPDATE_MARK,
    JoinRequest,
    build_add_nodes,
)
from shipbot.urbit.message import Message
from shipbot.urbit.resource import Resource

logger = logging.getLogger(__name__)


# ─── Errors ───────────────────────────────────────────────────────


class TransportError(Exception):
    """A request to the ship failed."""


class AuthenticationError(TransportError):
    """Login was rejected or no session could be established."""


class SubscriptionError(TransportError):
    """A subscription could not be opened (or was opened twice)."""


class PokeError(TransportError):
    """The ship negatively acknowledged a poke or thread."""


# ─── Values ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Frame:
    """One pushed update: server event id plus the update's JSON text."""

    id: int
    data: str
    app: str = ""
    path: str = ""


@dataclass(eq=False)
class Subscription:
    """A live subscription to ``app`` on ``path``."""

    app: str
    path: str
    auto_ack: bool = True
    request_id: int = 0
    maxsize: int = 1000
    _queue: asyncio.Queue = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._queue = asyncio.Queue(maxsize=self.maxsize)

    @property
    def key(self) -> tuple[str, str]:
        return (self.app, self.path)

    def __str__(self) -> str:
        return f"{self.app}:{self.path}"


# ─── Transport ────────────────────────────────────────────────────


class Transport(ABC):
    """
    Base class for ship transports.

    Subclasses implement the wire protocol; this class keeps the
    per-subscription frame buffers and builds the chat/join payloads.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._subscriptions: dict[tuple[str, str], Subscription] = {}

    @property
    @abstractmethod
    def ship(self) -> str:
        """The authenticated ship name, with its leading sig."""

    @abstractmethod
    async def connect(self) -> None:
        """Authenticate and open the connection. Raises AuthenticationError."""

    @abstractmethod
    async def close(self) -> None:
        """Tear down all subscriptions and the connection."""

    @abstractmethod
    async def open_subscription(
        self, app: str, path: str, *, auto_ack: bool = True
    ) -> Subscription:
        """
        Subscribe to ``app`` on ``path``.

        With ``auto_ack`` the transport acknowledges frames as they arrive;
        otherwise the caller must send_ack() each consumed frame.
        Raises SubscriptionError.
        """

    @abstractmethod
    async def send_poke(self, app: str, mark: str, payload: dict) -> None:
        """Poke ``app`` with ``payload`` under ``mark``. Raises PokeError."""

    @abstractmethod
    async def send_ack(self, subscription: Subscription, frame_id: int) -> None:
        """Mark frame ``frame_id`` of ``subscription`` as consumed."""

    @abstractmethod
    async def run_thread(
        self, input_mark: str, thread: str, output_mark: str, payload: dict
    ) -> object:
        """Run a ship thread and return its JSON result. Raises PokeError."""

    # ─── Frame Buffers ───────────────────────────────────────────

    def poll_next_frame(self, subscription: Subscription) -> Frame | None:
        """Pop the next buffered frame, or None when nothing is pending."""
        try:
            return subscription._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def subscriptions(self) -> list[Subscription]:
        """Active subscriptions in opening order."""
        return list(self._subscriptions.values())

    def _register(self, subscription: Subscription) -> Subscription:
        """Record a new subscription; at most one per (app, path)."""
        if subscription.key in self._subscriptions:
            raise SubscriptionError(f"already subscribed to {subscription}")
        self._subscriptions[subscription.key] = subscription
        logger.debug(
            "Subscribed to %s (total: %d)", subscription, len(self._subscriptions)
        )
        return subscription

    def _deliver(self, subscription: Subscription, frame: Frame) -> bool:
        """Buffer a frame for polling. Never blocks the reader."""
        try:
            subscription._queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            logger.warning(
                "Frame buffer full for %s, dropping frame %d", subscription, frame.id
            )
            return False

    # ─── Payload Helpers ─────────────────────────────────────────

    async def send_join(self, request: JoinRequest) -> None:
        """Join a chat through the graph-join thread."""
        await self.run_thread(
            "graph-view-action", "graph-join", "json", request.to_graph_join()
        )

    async def post_chat_message(self, resource: Resource, message: Message) -> None:
        """Post ``message`` into the chat ``resource`` as this ship."""
        await self.send_poke(
            GRAPH_PUSH_HOOK,
            GRAPH_UPDATE_MARK,
            build_add_nodes(resource, self.ship, message),
        )

    def __repr__(self) -> str:
        return f"<{self.name} Transport>"
