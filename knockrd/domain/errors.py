class KnockError(Exception):
    """Base class for all knockrd errors."""

    pass


class StoreUnavailable(KnockError):
    """The durable store failed or did not answer within its deadline."""

    pass


class InvalidInput(KnockError):
    """A required address, token or intent is missing or malformed."""

    pass


class InvalidToken(InvalidInput):
    """The CSRF token was never issued, has expired, or was already consumed."""

    pass


class StreamProcessingError(KnockError):
    """A change-feed record could not be applied to the local cache."""

    pass
