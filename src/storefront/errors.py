"""Failure taxonomy for the storefront.

Every failure the command surface can report is one of these. They are
raised by the domain and persistence code and turned into
``CommandResult`` values by ``StorefrontSession``.
"""


class StorefrontFailure(Exception):
    """Base class for all storefront failures."""

    kind = "failure"


class ValidationFailure(StorefrontFailure):
    """Malformed command input, rejected before any state is mutated."""

    kind = "validation"

    def __init__(self, messages: dict[str, list[str]]) -> None:
        self.messages = messages
        super().__init__(messages)


class PersistenceFailure(StorefrontFailure):
    """A write exhausted its retries, or a subscription failed."""

    kind = "persistence"

    def __init__(self, path: str, reason: str, attempts: int = 0) -> None:
        self.path = path
        self.reason = reason
        self.attempts = attempts
        super().__init__(f"{path}: {reason} (after {attempts} attempts)")


class EmptyCheckoutFailure(StorefrontFailure):
    """Checkout attempted with an empty cart or a non-positive total."""

    kind = "empty_checkout"


class DeserializationFailure(StorefrontFailure):
    """A stored document could not be turned back into a domain object."""

    kind = "deserialization"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
