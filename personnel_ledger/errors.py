"""Error taxonomy for identity resolution and the payroll ledger.

Only structurally invalid requests surface as exceptions. Ambiguous names,
missing rates and oversized days are routed to the review queue instead.
"""


class PersonnelLedgerError(Exception):
    """Base class for all personnel ledger errors."""


class AliasCollision(PersonnelLedgerError):
    """Raised when an alias key is already bound to a different live identity."""

    def __init__(self, alias_key: str, existing_identity_id: str):
        self.alias_key = alias_key
        self.existing_identity_id = existing_identity_id
        super().__init__(
            f"Alias '{alias_key}' already bound to identity {existing_identity_id}"
        )


class InvalidHours(PersonnelLedgerError, ValueError):
    """Raised when a ledger entry is given negative hours."""


class MissingRate(PersonnelLedgerError):
    """Raised when pay must be computed but no rate is known."""


class NotFoundError(PersonnelLedgerError):
    """Base class for unknown ids."""

    kind = "record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.kind} not found: {record_id}")


class IdentityNotFound(NotFoundError):
    kind = "Identity"


class EntryNotFound(NotFoundError):
    kind = "Ledger entry"


class ReviewItemNotFound(NotFoundError):
    kind = "Review item"


class AlreadySuperseded(PersonnelLedgerError):
    """Raised when correcting an entry that was already corrected."""

    def __init__(self, entry_id: str, superseded_by: str | None = None):
        self.entry_id = entry_id
        self.superseded_by = superseded_by
        super().__init__(f"Ledger entry {entry_id} is already superseded")


class InvalidStatusTransition(PersonnelLedgerError):
    """Raised when a status change is not allowed from the current status."""


class ConcurrentModification(PersonnelLedgerError):
    """Raised when an optimistic version check fails after the single retry."""


class ReviewAlreadyResolved(PersonnelLedgerError):
    """Raised when a review item is resolved a second time."""


class DuplicateEmployeeNumber(PersonnelLedgerError):
    """Raised when an employee number is already held by another identity."""

    def __init__(self, employee_number: str, existing_identity_id: str):
        self.employee_number = employee_number
        self.existing_identity_id = existing_identity_id
        super().__init__(
            f"Employee number {employee_number} already assigned to "
            f"identity {existing_identity_id}"
        )
