"""
Invite and resource-discovery handlers.

InviteHandler acts immediately, while its frame is being drained: the
acknowledgment must name the exact frame that carried the invite.
ResourceDiscoveryHandler only produces join intents; the dispatch loop
executes them in its acting phase.
"""

from __future__ import annotations

import logging
from enum import Enum

from shipbot.bridge.decoder import InviteUpdate, MetadataUpdate
from shipbot.bridge.joins import JoinIntent
from shipbot.core.metrics import metrics
from shipbot.transport.base import Subscription, Transport, TransportError
from shipbot.urbit.graph import GROUP_VIEW_APP, GROUP_VIEW_MARK, JoinRequest

logger = logging.getLogger(__name__)


class InviteOutcome(str, Enum):
    IGNORED = "ignored"  # store notification, nothing to accept
    ACCEPTED = "accepted"
    FAILED = "failed"


class InviteHandler:
    """Accepts group invites: join the group, then ack the invite frame."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def handle(
        self, event: InviteUpdate, subscription: Subscription
    ) -> InviteOutcome:
        if event.resource is None:
            # invite-store also reports accepts/declines; those are not invites
            logger.debug("Invite store notification on frame %d", event.frame_id)
            metrics.inc("bridge.invites", labels={"outcome": InviteOutcome.IGNORED.value})
            return InviteOutcome.IGNORED

        logger.info(
            "Got an invite to %s from %s",
            event.resource,
            event.inviter or "unknown",
            extra={"resource": str(event.resource), "frame_id": event.frame_id},
        )
        request = JoinRequest(
            resource=event.resource, app="groups", autojoin=True, share_contact=True
        )

        outcome = InviteOutcome.ACCEPTED
        try:
            await self._transport.send_poke(
                GROUP_VIEW_APP, GROUP_VIEW_MARK, request.to_group_join()
            )
            logger.info("Accepted invite to %s", event.resource)
        except TransportError as e:
            logger.error("There was an error accepting the invite to %s: %s", event.resource, e)
            outcome = InviteOutcome.FAILED

        try:
            await self._transport.send_ack(subscription, event.frame_id)
        except TransportError as e:
            logger.warning("Ack of invite frame %d failed: %s", event.frame_id, e)

        metrics.inc("bridge.invites", labels={"outcome": outcome.value})
        return outcome


class ResourceDiscoveryHandler:
    """Metadata updates -> chats to join."""

    def handle(self, event: MetadataUpdate) -> list[JoinIntent]:
        intents: list[JoinIntent] = []

        if event.added is not None:
            logger.info("New chat %s", event.added)
            intents.append(JoinIntent(event.added, source="add"))

        # Replayed on every subscribe, so this also catches chats created
        # while we were offline. Repeats are expected.
        for resource in event.associations:
            logger.debug("In chat %s", resource)
            intents.append(JoinIntent(resource, source="associations"))

        if event.removed is not None:
            logger.info("Removed from chat: %s", event.removed)

        return intents
