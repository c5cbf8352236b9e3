"""Error taxonomy for the storefront core.

Input problems reuse Protean's ``ValidationError`` (field → messages dict).
Lookup misses extend ``ObjectNotFoundError`` so callers that already handle
Protean's not-found case keep working. A re-applied discount code is a
conflict (``InvalidStateError``). Everything else extends ``ProteanException``.
"""

from protean.exceptions import InvalidStateError, ObjectNotFoundError, ProteanException, ValidationError

__all__ = [
    "AlreadyAppliedError",
    "ConsistencyError",
    "Expired",
    "ExternalServiceError",
    "LimitExceeded",
    "NotFoundError",
    "ReferenceNotFound",
    "ValidationError",
]


class NotFoundError(ObjectNotFoundError):
    """Unknown discount code, order, token or file. No state was changed."""


class ReferenceNotFound(NotFoundError):
    """No Payment row matches the gateway reference."""


class AlreadyAppliedError(InvalidStateError):
    """The submitted discount code is already attached to the session."""


class LimitExceeded(ProteanException):
    """The download token has no downloads left."""


class Expired(ProteanException):
    """The download token is past its expiry."""


class ExternalServiceError(ProteanException):
    """The gateway or mail service was unreachable, timed out or errored.

    The outcome is unknown. Operations that raise this are safe to retry.
    """


class ConsistencyError(ProteanException):
    """Persisted state contradicts what an external source of truth reports.

    Requires operator attention, never retried automatically.
    """
