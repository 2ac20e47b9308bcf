"""
Join Executor — turns join intents into graph-join requests.

No record of past joins is kept: when the metadata store replays an
association (every restart, and on every resubscribe) the chat is joined
again. The ship treats a repeat join of a chat we are already in as a
no-op, so this stays correct, just chatty.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from shipbot.core.metrics import metrics
from shipbot.transport.base import Transport, TransportError
from shipbot.urbit.graph import JoinRequest
from shipbot.urbit.resource import Resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinIntent:
    """A chat to join this cycle and what announced it ("add" / "associations")."""

    resource: Resource
    source: str = "add"


class JoinExecutor:
    def __init__(self, transport: Transport, spacing: float = 0.5) -> None:
        self._transport = transport
        self._spacing = spacing

    async def join(self, intent: JoinIntent) -> bool:
        """Send one graph join. Returns True when the ship accepted it."""
        request = JoinRequest(resource=intent.resource)
        logger.info(
            "Attempting to join %s",
            intent.resource,
            extra={"resource": str(intent.resource)},
        )
        try:
            await self._transport.send_join(request)
        except TransportError as e:
            logger.error("Join of %s failed: %s", intent.resource, e)
            metrics.inc("bridge.joins", labels={"status": "error"})
            return False
        except Exception as e:
            logger.error(
                "Unexpected error joining %s: %s", intent.resource, e, exc_info=True
            )
            metrics.inc("bridge.joins", labels={"status": "error"})
            return False
        logger.info("Joined %s", intent.resource)
        metrics.inc("bridge.joins", labels={"status": "ok"})
        return True

    async def execute(self, intents: list[JoinIntent]) -> int:
        """Join every intent in order, pausing between joins. Returns successes."""
        joined = 0
        for i, intent in enumerate(intents):
            if await self.join(intent):
                joined += 1
            if self._spacing > 0 and i < len(intents) - 1:
                await asyncio.sleep(self._spacing)
        return joined
