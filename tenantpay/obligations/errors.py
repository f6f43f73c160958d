"""Exceptions raised by the obligation services."""


class ObligationError(Exception):
    """Base class for payment obligation errors."""


class ObligationValidationError(ObligationError):
    """Request is malformed (bad status, missing ids, bad months). Nothing was changed."""


class ObligationPreconditionError(ObligationError):
    """The tenant/property cannot be billed (no rate, not linked, unknown tenant)."""


class ObligationNotFoundError(ObligationError):
    """No obligation matched the given id(s)."""
