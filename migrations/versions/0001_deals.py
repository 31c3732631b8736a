"""Create users, deals, deal_participants and deal_activities"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_deals"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("org_id", "email", name="uq_users_org_email"),
    )
    op.create_index("ix_users_org_id", "users", ["org_id"])

    op.create_table(
        "deals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("deal_name", sa.String(length=255), nullable=False),
        sa.Column("deal_reference", sa.String(length=100), nullable=True),
        sa.Column("deal_type", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_facility_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("negotiation_mode", sa.String(length=20), nullable=False, server_default="bilateral"),
        sa.Column("require_unanimous_consent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("auto_lock_agreed_terms", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("target_signing_date", sa.Date(), nullable=True),
        sa.Column("target_closing_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('draft', 'active', 'paused', 'agreed', 'closed', 'terminated')",
            name="ck_deals_status",
        ),
        sa.CheckConstraint(
            "deal_type IN ('new_facility', 'amendment', 'refinancing', 'restructuring')",
            name="ck_deals_deal_type",
        ),
        sa.CheckConstraint(
            "negotiation_mode IN ('bilateral', 'multilateral')",
            name="ck_deals_negotiation_mode",
        ),
    )
    op.create_index("ix_deals_organization_id", "deals", ["organization_id"])
    op.create_index("ix_deals_organization_status", "deals", ["organization_id", "status"])
    op.create_index("ix_deals_organization_updated_at", "deals", ["organization_id", "updated_at"])

    op.create_table(
        "deal_participants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("deal_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("party_name", sa.String(length=255), nullable=False),
        sa.Column("party_type", sa.String(length=20), nullable=False),
        sa.Column("party_role", sa.String(length=100), nullable=False),
        sa.Column("deal_role", sa.String(length=20), nullable=False),
        sa.Column("can_approve", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("invited_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("deal_id", "user_id", name="uq_deal_participants_deal_user"),
        sa.CheckConstraint(
            "party_type IN ('borrower_side', 'lender_side', 'third_party')",
            name="ck_deal_participants_party_type",
        ),
        sa.CheckConstraint(
            "deal_role IN ('deal_lead', 'negotiator', 'reviewer', 'observer')",
            name="ck_deal_participants_deal_role",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'invited', 'active', 'removed')",
            name="ck_deal_participants_status",
        ),
    )
    op.create_index("ix_deal_participants_deal_id", "deal_participants", ["deal_id"])
    op.create_index("ix_deal_participants_user_id", "deal_participants", ["user_id"])

    op.create_table(
        "deal_activities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("deal_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_name", sa.String(length=255), nullable=False, server_default="Unknown"),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "activity_type IN ('deal_created', 'participant_joined', 'participant_removed', "
            "'term_proposed', 'term_agreed', 'term_locked', 'comment_added', "
            "'document_exported', 'status_changed')",
            name="ck_deal_activities_activity_type",
        ),
    )
    op.create_index(
        "ix_deal_activities_deal_created_at", "deal_activities", ["deal_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_deal_activities_deal_created_at", table_name="deal_activities")
    op.drop_table("deal_activities")
    op.drop_index("ix_deal_participants_user_id", table_name="deal_participants")
    op.drop_index("ix_deal_participants_deal_id", table_name="deal_participants")
    op.drop_table("deal_participants")
    op.drop_index("ix_deals_organization_updated_at", table_name="deals")
    op.drop_index("ix_deals_organization_status", table_name="deals")
    op.drop_index("ix_deals_organization_id", table_name="deals")
    op.drop_table("deals")
    op.drop_index("ix_users_org_id", table_name="users")
    op.drop_table("users")
