"""Audit events recorded for every identity, ledger and review mutation."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class AuditEventType(str, Enum):
    IDENTITY_CREATED = "identity_created"
    ALIAS_BOUND = "alias_bound"
    IDENTITY_MERGED = "identity_merged"
    IDENTITY_UPDATED = "identity_updated"
    IDENTITY_DEACTIVATED = "identity_deactivated"
    ENTRY_CREATED = "entry_created"
    ENTRY_CORRECTED = "entry_corrected"
    ENTRY_REATTRIBUTED = "entry_reattributed"
    ENTRY_APPROVED = "entry_approved"
    ENTRY_REJECTED = "entry_rejected"
    REVIEW_OPENED = "review_opened"
    REVIEW_RESOLVED = "review_resolved"


class AuditEvent(BaseModel):
    """Immutable record of one mutation.

    Attributes:
        event_id: Unique identifier for this event instance
        event_type: What happened
        aggregate_type: "identity", "ledger_entry" or "review_item"
        aggregate_id: ID of the record that changed
        actor: Who caused it ("system" for automated processing)
        data: Event-specific details
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: AuditEventType
    aggregate_type: str
    aggregate_id: str
    actor: str = Field(default="system")
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
