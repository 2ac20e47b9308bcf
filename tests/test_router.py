"""Tests for the message router and the self-origin filter."""

from unittest.mock import MagicMock

import pytest

from shipbot.bridge.decoder import GraphUpdate
from shipbot.bridge.identity import BridgeIdentity, is_self_authored
from shipbot.bridge.router import MessageRouter
from shipbot.core.metrics import metrics
from shipbot.responders.base import Responder, as_responder
from shipbot.urbit.message import AuthoredMessage, Message, OutboundMessage
from shipbot.urbit.resource import Resource

CHAT = Resource("~host", "chat-1")


def _post(author: str, text: str, resource: Resource = CHAT) -> GraphUpdate:
    return GraphUpdate(
        frame_id=1,
        resource=resource,
        author=author,
        contents=Message().add_text(text),
        time_sent=1628000000000,
        index="/1",
    )


def _responder(reply=None, side_effect=None) -> MagicMock:
    responder = MagicMock(spec=Responder)
    responder.name = "mock"
    responder.respond.return_value = reply
    responder.respond.side_effect = side_effect
    return responder


class TestSelfOrigin:
    def test_identity_normalizes_sig(self):
        assert BridgeIdentity("bot").ship == "~bot"

    def test_self_authored(self, identity):
        assert is_self_authored("~bot", identity)
        assert is_self_authored("bot", identity)
        assert not is_self_authored("~other", identity)

    def test_empty_author_is_not_self(self, identity):
        assert not is_self_authored("", identity)

    @pytest.mark.asyncio
    async def test_own_posts_never_reach_responder(self, identity):
        responder = _responder(reply=Message().add_text("loop"))
        router = MessageRouter(responder, identity)

        result = await router.route(_post("~bot", "c ethusd 1h"))

        assert result is None
        responder.respond.assert_not_called()
        assert metrics.counter("bridge.self_suppressed") == 1


class TestRouting:
    @pytest.mark.asyncio
    async def test_reply_targets_origin_chat(self, identity):
        reply = Message().add_text("pong")
        responder = _responder(reply=reply)
        origin = Resource("~elsewhere", "chat-7")
        router = MessageRouter(responder, identity)

        result = await router.route(_post("~zod", "ping", resource=origin))

        assert result == OutboundMessage(resource=origin, message=reply)

    @pytest.mark.asyncio
    async def test_responder_sees_authored_message(self, identity):
        responder = _responder()
        router = MessageRouter(responder, identity)

        await router.route(_post("~zod", "hello"))

        (message,), _ = responder.respond.call_args
        assert isinstance(message, AuthoredMessage)
        assert message.author == "~zod"
        assert message.contents.to_formatted_string() == "hello"
        assert message.time_sent == "2021-08-03 14:13:20"
        assert message.index == "/1"
        assert message.resource == CHAT

    @pytest.mark.asyncio
    async def test_no_reply(self, identity):
        router = MessageRouter(_responder(reply=None), identity)
        assert await router.route(_post("~zod", "hello")) is None

    @pytest.mark.asyncio
    async def test_empty_reply_is_not_staged(self, identity):
        router = MessageRouter(_responder(reply=Message()), identity)
        assert await router.route(_post("~zod", "hello")) is None

    @pytest.mark.asyncio
    async def test_responder_exception_is_contained(self, identity):
        router = MessageRouter(_responder(side_effect=RuntimeError("boom")), identity)

        assert await router.route(_post("~zod", "hello")) is None
        assert metrics.counter("bridge.replies", {"status": "responder_error"}) == 1

    @pytest.mark.asyncio
    async def test_non_message_reply_is_dropped(self, identity):
        router = MessageRouter(_responder(reply="pong"), identity)

        assert await router.route(_post("~zod", "ping")) is None
        assert metrics.counter("bridge.replies", {"status": "responder_error"}) == 1

    @pytest.mark.asyncio
    async def test_responder_cannot_mutate_event_contents(self, identity):
        def scribble(message):
            message.contents.add_text("appended")
            message.contents.items[0]["text"] = "changed"
            return None

        event = _post("~zod", "hello")
        router = MessageRouter(as_responder(scribble), identity)

        await router.route(event)

        assert event.contents.to_json() == [{"text": "hello"}]

    @pytest.mark.asyncio
    async def test_plain_function_responder(self, identity):
        def echo(message):
            return Message().add_text(message.contents.to_formatted_string())

        router = MessageRouter(as_responder(echo), identity)

        result = await router.route(_post("~zod", "hello"))

        assert result.message.to_formatted_string() == "hello"


class TestWatchList:
    @pytest.mark.asyncio
    async def test_unwatched_chat_is_ignored(self, identity):
        responder = _responder(reply=Message().add_text("hi"))
        router = MessageRouter(responder, identity, watched_chats=("~host/other",))

        assert await router.route(_post("~zod", "hello")) is None
        responder.respond.assert_not_called()

    @pytest.mark.asyncio
    async def test_watched_chat_is_routed(self, identity):
        responder = _responder(reply=Message().add_text("hi"))
        router = MessageRouter(responder, identity, watched_chats=("~host/chat-1",))

        assert await router.route(_post("~zod", "hello")) is not None


def test_as_responder_rejects_non_callables():
    with pytest.raises(TypeError):
        as_responder("not a responder")
