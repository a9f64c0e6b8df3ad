"""Activation profile and audit log models.

One profile per user, holding the six step-scoped field groups of the
activation wizard together with its lifecycle metadata.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from datetime import date
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from lendflow.db.models.base import (
    ActivationStatus,
    AuditActionType,
    Base,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_column,
)

TOTAL_STEPS = 6

# Columns written by each step of the wizard
STEP_FIELDS: dict[int, tuple[str, ...]] = {
    1: (
        "full_name",
        "gender",
        "date_of_birth",
        "marital_status",
        "nationality",
        "agreed_to_terms",
    ),
    2: ("family_relatives",),
    3: ("residing_country", "state_region_province", "town_city"),
    4: ("id_type", "id_number"),
    5: ("account_type", "bank_name", "account_number", "account_holder_name"),
    6: ("signature_data",),
}

# Columns that must hold a value for a step to count as populated
REQUIRED_STEP_FIELDS: dict[int, tuple[str, ...]] = {
    1: ("full_name", "gender", "date_of_birth", "marital_status", "agreed_to_terms"),
    2: ("family_relatives",),
    3: ("residing_country", "state_region_province", "town_city"),
    4: ("id_type", "id_number"),
    5: ("account_type", "bank_name", "account_number", "account_holder_name"),
    6: ("signature_data",),
}


class ActivationProfile(Base):
    """Per-user KYC activation profile.

    Step writes overwrite only their own column group. current_step never
    regresses and completed_at is stamped once, when every step is populated.
    """

    __tablename__ = "activation_profiles"

    id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    # Step 1: personal information
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    marital_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(50), nullable=True)
    agreed_to_terms: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # Step 2: character references, list of {full_name, relationship, phone_number}
    family_relatives: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONB, nullable=True)

    # Step 3: residence
    residing_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state_region_province: Mapped[str | None] = mapped_column(String(100), nullable=True)
    town_city: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Step 4: identification
    id_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    id_number: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Step 5: payout account
    account_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    account_holder_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Step 6: signature as an image data URL
    signature_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle metadata
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    activation_status: Mapped[ActivationStatus] = mapped_column(
        enum_column(ActivationStatus, "activation_status"),
        nullable=False,
        default=ActivationStatus.IN_PROGRESS,
    )
    completed_at: Mapped[OptionalTimestampTZ]

    __table_args__ = (
        UniqueConstraint("user_id"),
        CheckConstraint("current_step BETWEEN 1 AND 6", name="current_step_range"),
        Index("ix_activation_profiles_status", "activation_status"),
    )

    def is_step_populated(self, step: int) -> bool:
        """Check whether every required column of a step holds a value."""
        return all(getattr(self, field) for field in REQUIRED_STEP_FIELDS[step])

    def populated_steps(self) -> list[int]:
        return [step for step in STEP_FIELDS if self.is_step_populated(step)]

    @property
    def all_steps_populated(self) -> bool:
        return len(self.populated_steps()) == TOTAL_STEPS

    def step_data(self, step: int) -> dict[str, Any]:
        """Return a step's column values in JSON-friendly form."""
        data: dict[str, Any] = {}
        for field in STEP_FIELDS[step]:
            value = getattr(self, field)
            if isinstance(value, date):
                value = value.isoformat()
            data[field] = value
        return data


class ActivationAuditLog(Base):
    """Append-only record of activation profile changes."""

    __tablename__ = "activation_audit_log"

    id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    activation_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activation_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    action_type: Mapped[AuditActionType] = mapped_column(
        enum_column(AuditActionType, "audit_action_type"),
        nullable=False,
    )
    step_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    old_value: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    new_value: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    # Admin (or the user themselves) responsible for the change
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_activation_audit_log_user_created", "user_id", "created_at"),
    )
