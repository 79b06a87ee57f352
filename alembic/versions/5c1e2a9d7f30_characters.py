"""characters

Revision ID: 5c1e2a9d7f30
Revises:
Create Date: 2026-10-19 10:02:14.518203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e2a9d7f30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "corporations",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_npc", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "alliances",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "characters",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_hash", sa.String(255), nullable=True),
        sa.Column("crest_access_token", sa.String(2048), nullable=True),
        sa.Column("crest_refresh_token", sa.String(2048), nullable=True),
        sa.Column(
            "corporation_id",
            sa.BigInteger,
            sa.ForeignKey("corporations.id"),
            nullable=True,
        ),
        sa.Column(
            "alliance_id", sa.BigInteger, sa.ForeignKey("alliances.id"), nullable=True
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_characters_owner_hash", "characters", ["owner_hash"])

    op.create_table(
        "character_logs",
        sa.Column(
            "character_id",
            sa.BigInteger,
            sa.ForeignKey("characters.id"),
            primary_key=True,
        ),
        sa.Column("system_id", sa.BigInteger, nullable=True),
        sa.Column("system_name", sa.String(255), nullable=True),
        sa.Column("station_id", sa.BigInteger, nullable=True),
        sa.Column("station_name", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("guid", sa.String(512), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "user_characters",
        sa.Column(
            "character_id",
            sa.BigInteger,
            sa.ForeignKey("characters.id"),
            primary_key=True,
        ),
        sa.Column(
            "user_guid", sa.String(512), sa.ForeignKey("users.guid"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_user_characters_user_guid", "user_characters", ["user_guid"]
    )


def downgrade() -> None:
    op.drop_index("idx_user_characters_user_guid", table_name="user_characters")
    op.drop_table("user_characters")
    op.drop_table("users")
    op.drop_table("character_logs")
    op.drop_index("idx_characters_owner_hash", table_name="characters")
    op.drop_table("characters")
    op.drop_table("alliances")
    op.drop_table("corporations")
