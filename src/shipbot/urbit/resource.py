"""Resource identifiers — the (host ship, name) pair naming a chat or group."""

from __future__ import annotations

from dataclasses import dataclass


def normalize_ship(ship: str) -> str:
    """Return a ship name with exactly one leading sig: "zod" -> "~zod"."""
    ship = ship.strip()
    if not ship or ship == "~":
        raise ValueError("empty ship name")
    return ship if ship.startswith("~") else f"~{ship}"


@dataclass(frozen=True)
class Resource:
    """A joinable chat/group resource hosted on ``ship``.

    Ship names are normalised on construction so that payloads carrying
    ``"zod"`` and ``"~zod"`` compare equal.
    """

    ship: str
    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("empty resource name")
        object.__setattr__(self, "ship", normalize_ship(self.ship))

    @classmethod
    def from_path(cls, path: str) -> Resource:
        """Parse a metadata resource path: "/ship/~zod/chat-1"."""
        parts = path.split("/")
        if len(parts) < 4 or parts[0] != "" or parts[1] != "ship":
            raise ValueError(f"not a resource path: {path!r}")
        return cls(ship=parts[2], name=parts[-1])

    @classmethod
    def from_json(cls, data: object) -> Resource:
        """Parse ``{"ship": ..., "name": ...}``; raises ValueError when malformed."""
        if not isinstance(data, dict):
            raise ValueError("resource is not an object")
        ship = data.get("ship")
        name = data.get("name")
        if not isinstance(ship, str) or not isinstance(name, str):
            raise ValueError("resource ship/name must be strings")
        return cls(ship=ship, name=name)

    @property
    def path(self) -> str:
        return f"/ship/{self.ship}/{self.name}"

    def to_json(self) -> dict:
        return {"ship": self.ship, "name": self.name}

    def __str__(self) -> str:
        return f"{self.ship}/{self.name}"
