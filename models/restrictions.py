from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from core.errors import MalformedPersistedEntry


class RestrictionCategory(str, Enum):
    MUTE = "mute"
    BAN = "ban"


class RestrictionState(str, Enum):
    UNRESTRICTED = "unrestricted"
    ACTIVE = "restricted-active"
    EXPIRED = "restricted-expired"


class RestrictionKey(NamedTuple):
    subject_id: int
    scope_id: int

    def encode(self) -> str:
        return f"{self.subject_id},{self.scope_id}"

    @classmethod
    def parse(cls, text: str) -> "RestrictionKey":
        parts = text.split(",")
        if len(parts) != 2:
            raise MalformedPersistedEntry(text, None)
        try:
            return cls(int(parts[0].strip()), int(parts[1].strip()))
        except ValueError:
            raise MalformedPersistedEntry(text, None) from None


@dataclass(frozen=True)
class RestrictionEntry:
    key: RestrictionKey
    expires_at: int

    @property
    def subject_id(self) -> int:
        return self.key.subject_id

    @property
    def scope_id(self) -> int:
        return self.key.scope_id

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def remaining_seconds(self, now: float) -> int:
        return max(0, int(self.expires_at - now))
