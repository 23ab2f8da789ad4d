"""Identity API endpoints.

Lookups (by canonical name, alias and employee number), the list of active
identities, and the admin operations: profile completion, rate changes,
deactivation and merges.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from personnel_ledger.identity.index import IdentityIndex
from personnel_ledger.identity.schemas import Identity, MergePreview

router = APIRouter(prefix="/identities", tags=["identities"])


class ProfileUpdate(BaseModel):
    """Request to fill in an identity's profile."""

    employee_number: str | None = Field(default=None, description="Payroll employee number")
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    overtime_rate: Decimal | None = Field(
        default=None, ge=0, description="Defaults to hourly * overtime multiplier"
    )
    actor: str = Field(min_length=1)


class RateChange(BaseModel):
    hourly_rate: Decimal = Field(ge=0)
    overtime_rate: Decimal | None = Field(default=None, ge=0)
    actor: str = Field(min_length=1)


class ActorRequest(BaseModel):
    actor: str = Field(min_length=1, description="Who is making the change")


class MergeRequest(BaseModel):
    """Request to merge the path identity into target_id."""

    target_id: str = Field(description="Surviving identity")
    actor: str = Field(min_length=1)


def get_identity_index(request: Request) -> IdentityIndex:
    """Dependency to get IdentityIndex from app state."""
    return request.app.state.identity_index


def _found(identity: Identity | None, what: str) -> Identity:
    if identity is None:
        raise HTTPException(status_code=404, detail=f"No identity for {what}")
    return identity


@router.get("", response_model=list[Identity])
async def list_active(index: IdentityIndex = Depends(get_identity_index)) -> list[Identity]:
    """List Active identities."""
    return await index.list_active()


@router.get("/by-name/{name}", response_model=Identity)
async def lookup_by_name(name: str, index: IdentityIndex = Depends(get_identity_index)) -> Identity:
    return _found(await index.lookup_by_canonical_name(name), f"name '{name}'")


@router.get("/by-alias/{alias}", response_model=Identity)
async def lookup_by_alias(alias: str, index: IdentityIndex = Depends(get_identity_index)) -> Identity:
    return _found(await index.lookup_by_alias(alias), f"alias '{alias}'")


@router.get("/by-employee-number/{employee_number}", response_model=Identity)
async def lookup_by_employee_number(
    employee_number: str,
    index: IdentityIndex = Depends(get_identity_index),
) -> Identity:
    return _found(
        await index.lookup_by_employee_number(employee_number),
        f"employee number '{employee_number}'",
    )


@router.get("/{identity_id}", response_model=Identity)
async def get_identity(identity_id: str, index: IdentityIndex = Depends(get_identity_index)) -> Identity:
    """Get an identity by id. Merged identities are returned as tombstones."""
    return await index.require(identity_id)


@router.patch("/{identity_id}/profile", response_model=Identity)
async def complete_profile(
    identity_id: str,
    update: ProfileUpdate,
    index: IdentityIndex = Depends(get_identity_index),
) -> Identity:
    """Fill in employee number and rates; Incomplete becomes Active once complete."""
    return await index.complete_profile(
        identity_id,
        employee_number=update.employee_number,
        hourly_rate=update.hourly_rate,
        overtime_rate=update.overtime_rate,
        actor=update.actor,
    )


@router.post("/{identity_id}/rates", response_model=Identity)
async def update_rates(
    identity_id: str,
    change: RateChange,
    index: IdentityIndex = Depends(get_identity_index),
) -> Identity:
    """Change default rates. Existing ledger entries keep their frozen rates."""
    return await index.update_rates(
        identity_id,
        hourly_rate=change.hourly_rate,
        overtime_rate=change.overtime_rate,
        actor=change.actor,
    )


@router.post("/{identity_id}/deactivate", response_model=Identity)
async def deactivate(
    identity_id: str,
    body: ActorRequest,
    index: IdentityIndex = Depends(get_identity_index),
) -> Identity:
    return await index.deactivate(identity_id, actor=body.actor)


@router.get("/{source_id}/merge-preview/{target_id}", response_model=MergePreview)
async def preview_merge(
    source_id: str,
    target_id: str,
    index: IdentityIndex = Depends(get_identity_index),
) -> MergePreview:
    """Show conflicts and aliases a merge would move, without merging."""
    return await index.preview_merge(source_id, target_id)


@router.post("/{source_id}/merge", response_model=Identity)
async def merge(
    source_id: str,
    body: MergeRequest,
    index: IdentityIndex = Depends(get_identity_index),
) -> Identity:
    """Merge source into target and return the surviving identity."""
    return await index.merge_identity(source_id, body.target_id, actor=body.actor)
