"""initial_grc_portal_schema

Creates the portal tables:
  - accounts              — login identities (ADMIN | CONSULTANT | CLIENT)
  - consultant_profiles   — consultant signup + interview workflow state
  - client_profiles       — client organisation + onboarding shadow state
  - scoping_forms         — service templates (client_id NULL) and client instances

Tables created conditionally (IF NOT EXISTS semantics) so the revision can be
stamped onto a development database that already ran db.create_all().

Revision ID: 5c1e9a2f7b30
Revises:
Create Date: 2026-10-18 09:12:44.518203
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5c1e9a2f7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Account ───────────────────────────────────────────────────────────
    if "accounts" not in existing:
        op.create_table(
            "accounts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column(
                "role", sa.String(length=20), nullable=False,
                comment="ADMIN | CONSULTANT | CLIENT",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)

    # ── ConsultantProfile ─────────────────────────────────────────────────
    if "consultant_profiles" not in existing:
        op.create_table(
            "consultant_profiles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("contact_first_name", sa.String(length=100), nullable=False),
            sa.Column("contact_last_name", sa.String(length=100), nullable=False),
            sa.Column("phone", sa.String(length=50), nullable=False),
            sa.Column("organization_website", sa.String(length=500), nullable=True),
            sa.Column("industry", sa.String(length=100), nullable=True),
            sa.Column("position", sa.String(length=100), nullable=True),
            sa.Column("experience", sa.String(length=100), nullable=True),
            sa.Column("date_of_birth", sa.Date(), nullable=True),
            sa.Column("certifications", sa.JSON(), nullable=False),
            sa.Column(
                "cv_url", sa.String(length=1000), nullable=True,
                comment="Opaque URL issued by the file-storage collaborator",
            ),
            sa.Column("services_offered", sa.JSON(), nullable=False),
            sa.Column("other_details", sa.Text(), nullable=True),
            sa.Column(
                "status", sa.String(length=30), nullable=False,
                server_default="PENDING_REVIEW",
            ),
            sa.Column("interview_link", sa.String(length=1000), nullable=True),
            sa.Column("interview_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("interview_score", sa.Float(), nullable=True),
            sa.Column("review_notes", sa.Text(), nullable=True),
            sa.Column("is_allowed_to_login", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("profile_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["accounts.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_consultant_profiles_user_id", "consultant_profiles", ["user_id"], unique=True
        )
        op.create_index("ix_consultant_profiles_status", "consultant_profiles", ["status"])

    # ── ClientProfile ─────────────────────────────────────────────────────
    if "client_profiles" not in existing:
        op.create_table(
            "client_profiles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("account_id", sa.Integer(), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=False),
            sa.Column("organization", sa.String(length=200), nullable=False),
            sa.Column("phone_number", sa.String(length=50), nullable=True),
            sa.Column(
                "onboarding_status", sa.String(length=30), nullable=False,
                server_default="NOT_STARTED",
            ),
            sa.Column("admin_review_notes", sa.Text(), nullable=True),
            sa.Column(
                "scoping_details", sa.JSON(), nullable=True,
                comment="Snapshot {service, formId, notes, submittedAt, status} of the last submission",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_client_profiles_account_id", "client_profiles", ["account_id"], unique=True
        )
        op.create_index(
            "ix_client_profiles_onboarding_status", "client_profiles", ["onboarding_status"]
        )

    # ── ScopingForm ───────────────────────────────────────────────────────
    if "scoping_forms" not in existing:
        op.create_table(
            "scoping_forms",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("service", sa.String(length=80), nullable=False),
            sa.Column(
                "client_id", sa.Integer(), nullable=True,
                comment="NULL = template; otherwise the client account owning this instance",
            ),
            sa.Column("questions", sa.JSON(), nullable=False),
            sa.Column("answers", sa.JSON(), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="PENDING",
            ),
            sa.Column("created_by_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["client_id"], ["accounts.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by_id"], ["accounts.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("client_id", "service", name="uq_scoping_form_client_service"),
        )
        op.create_index("ix_scoping_forms_service", "scoping_forms", ["service"])
        # One template per service; instances are covered by the unique constraint
        op.create_index(
            "uq_scoping_form_template_service",
            "scoping_forms",
            ["service"],
            unique=True,
            sqlite_where=sa.text("client_id IS NULL"),
            postgresql_where=sa.text("client_id IS NULL"),
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    if "scoping_forms" in existing:
        op.drop_index("uq_scoping_form_template_service", table_name="scoping_forms")
        op.drop_index("ix_scoping_forms_service", table_name="scoping_forms")
        op.drop_table("scoping_forms")

    if "client_profiles" in existing:
        op.drop_index("ix_client_profiles_onboarding_status", table_name="client_profiles")
        op.drop_index("ix_client_profiles_account_id", table_name="client_profiles")
        op.drop_table("client_profiles")

    if "consultant_profiles" in existing:
        op.drop_index("ix_consultant_profiles_status", table_name="consultant_profiles")
        op.drop_index("ix_consultant_profiles_user_id", table_name="consultant_profiles")
        op.drop_table("consultant_profiles")

    if "accounts" in existing:
        op.drop_index("ix_accounts_email", table_name="accounts")
        op.drop_table("accounts")
