"""
Responder — the integrator's reply policy.

A responder sees every chat post the bridge did not write itself and
decides whether to answer. That's the whole contract:

    class Echo(Responder):
        def respond(self, message: AuthoredMessage) -> Message | None:
            return Message().add_text(message.contents.to_formatted_string())

respond() is called synchronously (in a worker thread) and may do slow
I/O; a slow responder only lengthens the dispatch cycle it runs in. It
must not touch the bridge's state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from shipbot.urbit.message import AuthoredMessage, Message

ResponderFn = Callable[[AuthoredMessage], Optional[Message]]


class Responder(ABC):
    """Reply policy interface."""

    name: str = "responder"

    @abstractmethod
    def respond(self, message: AuthoredMessage) -> Optional[Message]:
        """Return the reply to post in the message's chat, or None to stay quiet."""
        ...


class FunctionResponder(Responder):
    """Adapts a plain function to the Responder interface."""

    def __init__(self, fn: ResponderFn, name: str | None = None) -> None:
        self._fn = fn
        self.name = name or getattr(fn, "__name__", "function")

    def respond(self, message: AuthoredMessage) -> Optional[Message]:
        return self._fn(message)


def as_responder(policy: Responder | ResponderFn) -> Responder:
    """Accept either a Responder or a bare function."""
    if isinstance(policy, Responder):
        return policy
    if callable(policy):
        return FunctionResponder(policy)
    raise TypeError(f"not a responder: {policy!r}")
