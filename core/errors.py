from typing import Any, Optional


class RestrictionError(Exception):
    """Base class for restriction subsystem errors."""


class RestrictionNotFound(RestrictionError):
    def __init__(self, key: Any) -> None:
        super().__init__(f"No restriction stored for {key}")
        self.key = key


class AlreadyRestricted(RestrictionError):
    def __init__(self, key: Any, expires_at: int) -> None:
        super().__init__(f"{key} is already restricted until {expires_at}")
        self.key = key
        self.expires_at = expires_at


class ResolutionFailure(RestrictionError):
    """A guild, member or role could not be resolved on the platform."""

    def __init__(self, what: str, identifier: Optional[int]) -> None:
        super().__init__(f"Could not resolve {what} {identifier}")
        self.what = what
        self.identifier = identifier


class ExternalApiFailure(RestrictionError):
    def __init__(self, action: str, cause: BaseException) -> None:
        super().__init__(f"{action} failed: {cause}")
        self.action = action
        self.cause = cause


class MalformedPersistedEntry(RestrictionError):
    def __init__(self, record_key: Any, raw_expiry: Any) -> None:
        super().__init__(f"Unparsable restriction record {record_key!r} -> {raw_expiry!r}")
        self.record_key = record_key
        self.raw_expiry = raw_expiry
