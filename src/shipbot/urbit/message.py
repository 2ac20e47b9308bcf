"""
Chat message values.

A ``Message`` is the ordered list of content items a graph post carries:

    [{"text": "hello "}, {"mention": "~zod"}, {"url": "https://..."}]

Responders build outbound messages with the chainable ``add_*`` methods
and read inbound ones through ``to_formatted_string()`` /
``to_formatted_words()``.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field

from shipbot.urbit.resource import Resource


@dataclass
class Message:
    """Ordered content items of a single chat post."""

    items: list[dict] = field(default_factory=list)

    @classmethod
    def from_json(cls, contents: object) -> Message:
        """Build from a post's ``contents`` list; raises ValueError when malformed."""
        if not isinstance(contents, list):
            raise ValueError("contents is not a list")
        items = []
        for item in contents:
            if not isinstance(item, dict):
                raise ValueError("content item is not an object")
            items.append(dict(item))
        return cls(items=items)

    def add_text(self, text: str) -> Message:
        self.items.append({"text": text})
        return self

    def add_url(self, url: str) -> Message:
        self.items.append({"url": url})
        return self

    def add_mention(self, ship: str) -> Message:
        self.items.append({"mention": ship})
        return self

    def add_code(self, expression: str, output: list[str] | None = None) -> Message:
        self.items.append(
            {"code": {"expression": expression, "output": output or []}}
        )
        return self

    def to_formatted_string(self) -> str:
        """Flatten the content items into one line of text."""
        pieces = []
        for item in self.items:
            if isinstance(item.get("text"), str):
                pieces.append(item["text"])
            elif isinstance(item.get("url"), str):
                pieces.append(item["url"])
            elif isinstance(item.get("mention"), str):
                pieces.append(item["mention"])
            elif isinstance(item.get("code"), dict):
                pieces.append(str(item["code"].get("expression", "")))
            elif "reference" in item:
                pieces.append("<reference>")
        return " ".join(p.strip() for p in pieces if p.strip())

    def to_formatted_words(self) -> list[str]:
        return self.to_formatted_string().split()

    def to_json(self) -> list[dict]:
        return [dict(item) for item in self.items]

    def copy(self) -> Message:
        return Message(items=deepcopy(self.items))

    def __bool__(self) -> bool:
        return bool(self.items)


@dataclass(frozen=True)
class AuthoredMessage:
    """An inbound chat post, as handed to a Responder."""

    author: str
    contents: Message
    time_sent: str  # "YYYY-MM-DD HH:MM:SS" (UTC)
    index: str
    resource: Resource


@dataclass(frozen=True)
class OutboundMessage:
    """A reply staged for posting into ``resource``."""

    resource: Resource
    message: Message
