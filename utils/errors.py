"""Typed errors raised by the annotation core and its storage adapters."""


class LedgerError(Exception):
    """Base class for every error the core raises on purpose."""


class ValidationError(LedgerError):
    """Malformed input: bad status value, channel-shape mismatch, duplicate user."""


class EmptyIngestError(ValidationError):
    """A bulk ingest produced zero records."""


class NotFound(LedgerError):
    """Unknown user, dataset, record or annotation reference."""


class Forbidden(LedgerError):
    """A role-gated operation was attempted by an unprivileged caller."""


class Unauthenticated(LedgerError):
    """The identity collaborator could not resolve the caller."""


class PersistenceError(LedgerError):
    """The storage collaborator failed; never reported as success."""
