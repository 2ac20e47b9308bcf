"""
Dispatch Loop — the bridge's fixed-cadence driver.

One cycle:

    IDLE → DRAINING → ACTING → PACING → IDLE

DRAINING   staged joins/replies are reset, then every subscription (in
           opening order) is drained frame by frame. Each frame is decoded
           and handled as soon as it is popped: invites are accepted and
           their frame acked right there, metadata adds join intents,
           chat posts may stage a reply.
ACTING     join intents run first, then staged replies are posted.
PACING     fixed pause (poll_interval) whether or not the cycle found work.
           stop() only takes effect here.

Error policy:
- a frame that fails to decode is logged and skipped
- an exception while handling one frame is contained to that frame
- a failed join/post is logged and dropped, never retried or carried over
- only failing to open a subscription in start() is fatal

Usage:
    loop = DispatchLoop(transport, ChartResponder(), BridgeIdentity(transport.ship))
    await loop.start()           # raises SubscriptionError
    task = asyncio.create_task(loop.run())
    # ... later ...
    loop.stop()
    await task
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shipbot.bridge.decoder import (
    GraphUpdate,
    InviteUpdate,
    MetadataUpdate,
    Unrecognized,
    decode_frame,
)
from shipbot.bridge.handlers import InviteHandler, InviteOutcome, ResourceDiscoveryHandler
from shipbot.bridge.identity import BridgeIdentity, is_self_authored
from shipbot.bridge.joins import JoinExecutor, JoinIntent
from shipbot.bridge.router import MessageRouter
from shipbot.core.config import BridgeConfig
from shipbot.core.logging import CycleTimer
from shipbot.core.metrics import metrics
from shipbot.responders.base import Responder, ResponderFn, as_responder
from shipbot.transport.base import (
    Frame,
    Subscription,
    SubscriptionError,
    Transport,
    TransportError,
)
from shipbot.urbit.message import OutboundMessage

logger = logging.getLogger(__name__)

# Log a metrics snapshot every N cycles (~5 minutes at the default interval)
METRICS_LOG_EVERY = 600


class LoopState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"
    ACTING = "acting"
    PACING = "pacing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class StreamSpec:
    """A (store, path) pair the loop subscribes to at startup."""

    app: str
    path: str
    auto_ack: bool = True


# invite-store frames are acked by the invite handler, not the transport
DEFAULT_STREAMS = (
    StreamSpec("graph-store", "/updates"),
    StreamSpec("metadata-store", "/all"),
    StreamSpec("invite-store", "/updates", auto_ack=False),
)


@dataclass
class CycleReport:
    """What one cycle did."""

    cycle: int
    frames: int = 0
    unrecognized: int = 0
    self_suppressed: int = 0
    invites_accepted: int = 0
    join_intents: int = 0
    joins_attempted: int = 0
    joins_succeeded: int = 0
    replies_staged: int = 0
    replies_posted: int = 0
    errors: int = 0
    duration_ms: int = 0


class DispatchLoop:
    """Multiplexes the ship's update streams into handlers and side effects."""

    def __init__(
        self,
        transport: Transport,
        responder: Responder | ResponderFn,
        identity: BridgeIdentity,
        config: Optional[BridgeConfig] = None,
        streams: tuple[StreamSpec, ...] = DEFAULT_STREAMS,
    ) -> None:
        config = config or BridgeConfig()
        self._transport = transport
        self._identity = identity
        self._config = config
        self._streams = streams

        self._invites = InviteHandler(transport)
        self._discovery = ResourceDiscoveryHandler()
        self._router = MessageRouter(
            as_responder(responder), identity, config.watched_chats
        )
        self._joins = JoinExecutor(transport, spacing=config.join_spacing)

        self._subscriptions: list[Subscription] = []
        # Per-cycle staging, reset at the start of every drain
        self._join_intents: list[JoinIntent] = []
        self._outbound: list[OutboundMessage] = []

        self._stop = asyncio.Event()
        self._cycle = 0
        self.state = LoopState.IDLE

    @property
    def identity(self) -> BridgeIdentity:
        return self._identity

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    @property
    def staged_joins(self) -> tuple[JoinIntent, ...]:
        return tuple(self._join_intents)

    @property
    def staged_replies(self) -> tuple[OutboundMessage, ...]:
        return tuple(self._outbound)

    # ─── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        """Open every stream. Any failure here is fatal."""
        if self._subscriptions:
            return
        for spec in self._streams:
            try:
                subscription = await self._transport.open_subscription(
                    spec.app, spec.path, auto_ack=spec.auto_ack
                )
            except SubscriptionError:
                raise
            except TransportError as e:
                raise SubscriptionError(
                    f"could not subscribe to {spec.app}:{spec.path}: {e}"
                ) from e
            self._subscriptions.append(subscription)
        metrics.gauge_set("bridge.subscriptions", len(self._subscriptions))
        logger.info(
            "Bridge for %s watching %s",
            self._identity.ship,
            ", ".join(str(s) for s in self._subscriptions),
        )

    async def run(self) -> None:
        """Cycle until stop() is called."""
        await self.start()
        while not self._stop.is_set():
            await self.run_cycle()
            await self._pace()
        self.state = LoopState.STOPPED
        logger.info("Dispatch loop stopped after %d cycles", self._cycle)

    def stop(self) -> None:
        """Ask the loop to stop at the next pacing boundary."""
        self._stop.set()

    # ─── One Cycle ───────────────────────────────────────────────

    async def run_cycle(self) -> CycleReport:
        """Drain every subscription, then act on what was staged."""
        self._cycle += 1
        report = CycleReport(cycle=self._cycle)
        timer = CycleTimer()

        self.state = LoopState.DRAINING
        self._join_intents = []
        self._outbound = []
        for subscription in self._subscriptions:
            await self._drain(subscription, report)
        timer.mark("drain")

        self.state = LoopState.ACTING
        report.join_intents = len(self._join_intents)
        report.replies_staged = len(self._outbound)
        await self._act(report)
        timer.mark("act")

        self.state = LoopState.IDLE
        report.duration_ms = timer.total_ms()
        metrics.observe("bridge.cycle_ms", report.duration_ms)

        if report.frames:
            logger.debug(
                "Cycle %d: %d frames, %d joins, %d replies (%s)",
                report.cycle,
                report.frames,
                report.joins_succeeded,
                report.replies_posted,
                timer.summary(),
                extra={"cycle": report.cycle, "duration_ms": report.duration_ms},
            )
        if self._cycle % METRICS_LOG_EVERY == 0:
            logger.debug("Metrics: %s", metrics.snapshot())
        return report

    async def _drain(self, subscription: Subscription, report: CycleReport) -> None:
        while True:
            frame = self._transport.poll_next_frame(subscription)
            if frame is None:
                return
            report.frames += 1
            metrics.inc("bridge.frames", labels={"store": subscription.app})
            try:
                await self._dispatch(subscription, frame, report)
            except Exception as e:
                report.errors += 1
                logger.error(
                    "Error handling frame %d on %s: %s",
                    frame.id,
                    subscription,
                    e,
                    exc_info=True,
                    extra={"subscription": str(subscription), "frame_id": frame.id},
                )

    async def _dispatch(
        self, subscription: Subscription, frame: Frame, report: CycleReport
    ) -> None:
        event = decode_frame(frame)

        if isinstance(event, Unrecognized):
            report.unrecognized += 1
            metrics.inc("bridge.unrecognized")
            logger.debug(
                "Skipping frame %d on %s: %s",
                frame.id,
                subscription,
                event.reason,
                extra={"subscription": str(subscription), "frame_id": frame.id},
            )
        elif isinstance(event, InviteUpdate):
            outcome = await self._invites.handle(event, subscription)
            if outcome is InviteOutcome.ACCEPTED:
                report.invites_accepted += 1
        elif isinstance(event, MetadataUpdate):
            self._join_intents.extend(self._discovery.handle(event))
        elif isinstance(event, GraphUpdate):
            if is_self_authored(event.author, self._identity):
                report.self_suppressed += 1
            outbound = await self._router.route(event)
            if outbound is not None:
                self._outbound.append(outbound)

    async def _act(self, report: CycleReport) -> None:
        if self._join_intents:
            report.joins_attempted = len(self._join_intents)
            report.joins_succeeded = await self._joins.execute(self._join_intents)
            report.errors += report.joins_attempted - report.joins_succeeded

        for outbound in self._outbound:
            try:
                await self._transport.post_chat_message(
                    outbound.resource, outbound.message
                )
            except TransportError as e:
                report.errors += 1
                metrics.inc("bridge.replies", labels={"status": "error"})
                logger.error(
                    "Posting reply to %s failed: %s",
                    outbound.resource,
                    e,
                    extra={"resource": str(outbound.resource)},
                )
                continue
            except Exception as e:
                report.errors += 1
                metrics.inc("bridge.replies", labels={"status": "error"})
                logger.error(
                    "Unexpected error posting reply to %s: %s",
                    outbound.resource,
                    e,
                    exc_info=True,
                    extra={"resource": str(outbound.resource)},
                )
                continue
            report.replies_posted += 1
            metrics.inc("bridge.replies", labels={"status": "posted"})

    async def _pace(self) -> None:
        self.state = LoopState.PACING
        try:
            await asyncio.wait_for(
                self._stop.wait(), timeout=self._config.poll_interval
            )
        except asyncio.TimeoutError:
            pass
        self.state = LoopState.IDLE
