"""Initial schema for activation profiles and documents.

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

Creates:
- activation_profiles (one per user, six step column groups)
- user_documents (object-key or inline content)
- activation_audit_log
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply migration: activation schema."""
    activation_status = postgresql.ENUM(
        "pending",
        "in_progress",
        "completed",
        "rejected",
        name="activation_status",
        create_type=False,
    )
    activation_status.create(op.get_bind(), checkfirst=True)

    verification_status = postgresql.ENUM(
        "pending", "verified", "rejected", name="verification_status", create_type=False
    )
    verification_status.create(op.get_bind(), checkfirst=True)

    document_type = postgresql.ENUM(
        "id_front",
        "id_back",
        "selfie",
        "passport_photo",
        "driver_license",
        "electricity_bill",
        "address_proof",
        "bank_statement",
        "signature",
        name="document_type",
        create_type=False,
    )
    document_type.create(op.get_bind(), checkfirst=True)

    document_category = postgresql.ENUM(
        "identity",
        "address",
        "financial",
        "signature",
        name="document_category",
        create_type=False,
    )
    document_category.create(op.get_bind(), checkfirst=True)

    storage_kind = postgresql.ENUM("object_key", "inline", name="storage_kind", create_type=False)
    storage_kind.create(op.get_bind(), checkfirst=True)

    audit_action_type = postgresql.ENUM(
        "create",
        "update",
        "status_change",
        "document_upload",
        "document_replace",
        "document_delete",
        name="audit_action_type",
        create_type=False,
    )
    audit_action_type.create(op.get_bind(), checkfirst=True)

    # =========================================================================
    # Activation profiles
    # =========================================================================
    op.create_table(
        "activation_profiles",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("marital_status", sa.String(20), nullable=True),
        sa.Column("nationality", sa.String(50), nullable=True),
        sa.Column(
            "agreed_to_terms", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "family_relatives", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column("residing_country", sa.String(100), nullable=True),
        sa.Column("state_region_province", sa.String(100), nullable=True),
        sa.Column("town_city", sa.String(100), nullable=True),
        sa.Column("id_type", sa.String(30), nullable=True),
        sa.Column("id_number", sa.String(30), nullable=True),
        sa.Column("account_type", sa.String(20), nullable=True),
        sa.Column("bank_name", sa.String(100), nullable=True),
        sa.Column("account_number", sa.String(30), nullable=True),
        sa.Column("account_holder_name", sa.String(100), nullable=True),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("current_step", sa.Integer(), nullable=False),
        sa.Column("activation_status", activation_status, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "current_step BETWEEN 1 AND 6",
            name=op.f("ck_activation_profiles_current_step_range"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_activation_profiles")),
        sa.UniqueConstraint("user_id", name=op.f("uq_activation_profiles_user_id")),
    )
    op.create_index(
        "ix_activation_profiles_status",
        "activation_profiles",
        ["activation_status"],
        unique=False,
    )

    # =========================================================================
    # Documents
    # =========================================================================
    op.create_table(
        "user_documents",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("activation_profile_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("document_type", document_type, nullable=False),
        sa.Column("document_category", document_category, nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("file_hash", sa.String(64), nullable=False),
        sa.Column("storage_kind", storage_kind, nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=True),
        sa.Column("inline_data", sa.Text(), nullable=True),
        sa.Column("verification_status", verification_status, nullable=False),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(storage_key IS NULL) <> (inline_data IS NULL)",
            name=op.f("ck_user_documents_single_storage_descriptor"),
        ),
        sa.ForeignKeyConstraint(
            ["activation_profile_id"],
            ["activation_profiles.id"],
            name=op.f("fk_user_documents_activation_profile_id_activation_profiles"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_user_documents")),
    )
    op.create_index(
        "ix_user_documents_user_created",
        "user_documents",
        ["user_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_user_documents_profile",
        "user_documents",
        ["activation_profile_id"],
        unique=False,
    )

    # =========================================================================
    # Audit log
    # =========================================================================
    op.create_table(
        "activation_audit_log",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("activation_profile_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action_type", audit_action_type, nullable=False),
        sa.Column("step_number", sa.Integer(), nullable=True),
        sa.Column("old_value", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("new_value", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["activation_profile_id"],
            ["activation_profiles.id"],
            name=op.f("fk_activation_audit_log_activation_profile_id_activation_profiles"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_activation_audit_log")),
    )
    op.create_index(
        "ix_activation_audit_log_user_created",
        "activation_audit_log",
        ["user_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration: drop activation schema."""
    op.drop_index("ix_activation_audit_log_user_created", table_name="activation_audit_log")
    op.drop_table("activation_audit_log")
    op.drop_index("ix_user_documents_profile", table_name="user_documents")
    op.drop_index("ix_user_documents_user_created", table_name="user_documents")
    op.drop_table("user_documents")
    op.drop_index("ix_activation_profiles_status", table_name="activation_profiles")
    op.drop_table("activation_profiles")

    op.execute("DROP TYPE IF EXISTS audit_action_type")
    op.execute("DROP TYPE IF EXISTS storage_kind")
    op.execute("DROP TYPE IF EXISTS document_category")
    op.execute("DROP TYPE IF EXISTS document_type")
    op.execute("DROP TYPE IF EXISTS verification_status")
    op.execute("DROP TYPE IF EXISTS activation_status")
