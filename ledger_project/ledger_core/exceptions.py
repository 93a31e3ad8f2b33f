from django.core.exceptions import ObjectDoesNotExist, ValidationError


class UnbalancedEntryError(ValidationError):
    """Raised when a JournalEntry fails the double-entry balance check at post time."""
    pass


class InvalidTransitionError(ValidationError):
    """Raised when a state-machine move is not allowed from the current status."""
    pass


class AlreadyPostedError(InvalidTransitionError):
    """Raised when posting a journal entry that is no longer a draft."""
    pass


class InvalidStateError(InvalidTransitionError):
    """Raised when an operation needs the target in a state it is not in
    (e.g. recording a payment against an invoice that is not posted)."""
    pass


class NotFoundError(ValidationError, ObjectDoesNotExist):
    """Raised when an id does not resolve inside the caller's company."""
    pass


class AmountExceedsBalanceError(ValidationError):
    """Raised when a payment is larger than the invoice's outstanding balance."""
    pass


class DuplicateNumberError(ValidationError):
    """Raised when an invoice number is already used within the same company."""
    pass
