"""Payment obligations: monthly rent records and their lifecycle."""
from .errors import (
    ObligationError,
    ObligationValidationError,
    ObligationPreconditionError,
    ObligationNotFoundError,
)
from .models import ObligationStatus, PaymentObligation

__all__ = [
    "ObligationError",
    "ObligationValidationError",
    "ObligationPreconditionError",
    "ObligationNotFoundError",
    "ObligationStatus",
    "PaymentObligation",
]
