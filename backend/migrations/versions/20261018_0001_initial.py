from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("claims", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "matches",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("order", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )

    # no FK on groups.match_id: orphans are routed to the unassigned bucket
    op.create_table(
        "groups",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("match_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("order", sa.Integer(), nullable=True),
        sa.Column("start_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("end_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_groups_match_id", "groups", ["match_id"])

    op.create_table(
        "locations",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("match_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("difficulty", sa.Float(), nullable=False, server_default="1"),
        sa.Column("base_points", sa.Float(), nullable=False),
        sa.Column("box_keyword", sa.String(length=120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_locations_match_id", "locations", ["match_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("leader_email", sa.String(length=320), nullable=True),
        sa.Column("team_tag", sa.String(length=64), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("match_id", sa.String(length=64), nullable=True),
        sa.Column("match_name", sa.String(length=120), nullable=True),
        sa.Column("group_id", sa.String(length=64), nullable=True),
        sa.Column("group_name", sa.String(length=120), nullable=True),
        sa.Column("solved", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("score >= 0", name="ck_teams_score_nonneg"),
    )
    op.create_index("ix_teams_match_id", "teams", ["match_id"])
    op.create_index("ix_teams_group_id", "teams", ["group_id"])

    op.create_table(
        "claims",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("processed_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("processed_by", sa.String(length=16), nullable=False),
    )
    op.create_index("ix_claims_team_id", "claims", ["team_id"])
    op.create_index("ix_claims_location_id", "claims", ["location_id"])
    op.create_unique_constraint("uq_claim_once_per_location", "claims", ["team_id", "location_id"])

    op.create_table(
        "runtime_settings",
        sa.Column("id", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("event_start", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("freeze_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("event_end", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("freeze_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )

    op.create_table(
        "leaderboard_public",
        sa.Column("id", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("schema_version", sa.Integer(), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

def downgrade() -> None:
    op.drop_table("leaderboard_public")
    op.drop_table("runtime_settings")
    op.drop_constraint("uq_claim_once_per_location", "claims", type_="unique")
    op.drop_index("ix_claims_location_id", table_name="claims")
    op.drop_index("ix_claims_team_id", table_name="claims")
    op.drop_table("claims")
    op.drop_index("ix_teams_group_id", table_name="teams")
    op.drop_index("ix_teams_match_id", table_name="teams")
    op.drop_table("teams")
    op.drop_index("ix_locations_match_id", table_name="locations")
    op.drop_table("locations")
    op.drop_index("ix_groups_match_id", table_name="groups")
    op.drop_table("groups")
    op.drop_table("matches")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
