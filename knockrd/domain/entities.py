from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

Intent = Literal["allow", "disallow"]
ChangeType = Literal["insert", "modify", "remove"]

INTENTS: tuple[str, ...] = ("allow", "disallow")
CHANGE_TYPES: tuple[str, ...] = ("insert", "modify", "remove")


@dataclass(frozen=True)
class Item:
    key: str
    expires_at: int

    def is_live(self, now: float) -> bool:
        return now < self.expires_at

    def remaining(self, now: float) -> float:
        return self.expires_at - now


@dataclass(frozen=True)
class IssuedToken:
    address: str
    token: str


@dataclass(frozen=True)
class Confirmation:
    address: str
    intent: Intent
    ttl_seconds: int | None = None

    @property
    def message(self) -> str:
        if self.intent == "allow":
            return f"Allowed from {self.address} for {timedelta(seconds=self.ttl_seconds or 0)}."
        return f"Disallowed from {self.address}"


@dataclass(frozen=True)
class ChangeRecord:
    """One mutation notice from the store's change feed."""

    key: str
    type: ChangeType
