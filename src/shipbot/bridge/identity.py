"""The bridge's own identity and the self-origin filter."""

from __future__ import annotations

from dataclasses import dataclass

from shipbot.urbit.resource import normalize_ship


@dataclass(frozen=True)
class BridgeIdentity:
    """Who the bridge is. Built once after login, read-only afterwards."""

    ship: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "ship", normalize_ship(self.ship))


def is_self_authored(author: str, identity: BridgeIdentity) -> bool:
    """True when ``author`` is the bridge itself — never reply to those."""
    try:
        return normalize_ship(author) == identity.ship
    except ValueError:
        return False
