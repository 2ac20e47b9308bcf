"""
Message Router — chat posts to responder replies.

For each GraphUpdate:
1. Drop posts written by the bridge itself (no feedback loops)
2. Drop posts from chats outside the watch list, if one is configured
3. Build an AuthoredMessage and ask the Responder
4. Pair any reply with the chat the post came from
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from shipbot.bridge.decoder import GraphUpdate
from shipbot.bridge.identity import BridgeIdentity, is_self_authored
from shipbot.core.metrics import metrics
from shipbot.responders.base import Responder
from shipbot.urbit.message import AuthoredMessage, Message, OutboundMessage

logger = logging.getLogger(__name__)


class MessageRouter:
    def __init__(
        self,
        responder: Responder,
        identity: BridgeIdentity,
        watched_chats: Iterable[str] = (),
    ) -> None:
        self._responder = responder
        self._identity = identity
        self._watched = frozenset(watched_chats)

    def watches(self, event: GraphUpdate) -> bool:
        return not self._watched or str(event.resource) in self._watched

    async def route(self, event: GraphUpdate) -> Optional[OutboundMessage]:
        """Ask the responder about one post. Returns the reply to stage, if any."""
        if is_self_authored(event.author, self._identity):
            metrics.inc("bridge.self_suppressed")
            return None
        if not self.watches(event):
            logger.debug("Post in unwatched chat %s ignored", event.resource)
            return None

        message = AuthoredMessage(
            author=event.author,
            contents=event.contents.copy(),
            time_sent=event.time_sent_formatted,
            index=event.index,
            resource=event.resource,
        )
        logger.debug(
            "Received message from %s in %s: %s",
            message.author,
            event.resource,
            message.contents.to_formatted_string(),
        )

        try:
            # Responders block; keep the event stream reader running meanwhile
            reply = await asyncio.to_thread(self._responder.respond, message)
        except Exception as e:
            logger.error(
                "Responder %s failed on %s: %s",
                self._responder.name,
                event.index,
                e,
                exc_info=True,
            )
            metrics.inc("bridge.replies", labels={"status": "responder_error"})
            return None

        if reply is None:
            logger.debug("Message ignored.")
            return None
        if not isinstance(reply, Message):
            logger.error(
                "Responder %s returned %s instead of a Message, dropped",
                self._responder.name,
                type(reply).__name__,
            )
            metrics.inc("bridge.replies", labels={"status": "responder_error"})
            return None
        if not reply:
            logger.debug("Empty reply from %s ignored", self._responder.name)
            return None

        logger.info("Replying to %s in %s", message.author, event.resource)
        metrics.inc("bridge.replies", labels={"status": "staged"})
        return OutboundMessage(resource=event.resource, message=reply)
