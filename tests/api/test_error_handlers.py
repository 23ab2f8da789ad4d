"""Tests for domain error to HTTP status mapping."""

import pytest

from personnel_ledger.api.errors import status_code_for
from personnel_ledger.errors import (
    AliasCollision,
    AlreadySuperseded,
    ConcurrentModification,
    DuplicateEmployeeNumber,
    EntryNotFound,
    IdentityNotFound,
    InvalidHours,
    InvalidStatusTransition,
    MissingRate,
    PersonnelLedgerError,
    ReviewAlreadyResolved,
    ReviewItemNotFound,
)


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (IdentityNotFound("id-1"), 404),
        (EntryNotFound("e-1"), 404),
        (ReviewItemNotFound("i-1"), 404),
        (InvalidHours("regular hours must not be negative"), 422),
        (MissingRate("no rate"), 422),
        (AliasCollision("bob", "id-2"), 409),
        (DuplicateEmployeeNumber("E-1", "id-2"), 409),
        (AlreadySuperseded("e-1", "e-2"), 409),
        (InvalidStatusTransition("rejected"), 409),
        (ConcurrentModification("version moved"), 409),
        (ReviewAlreadyResolved("decided"), 409),
        (PersonnelLedgerError("other"), 400),
    ],
)
def test_status_code_for(error, status_code):
    assert status_code_for(error) == status_code
