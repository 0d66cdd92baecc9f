"""Create lobby snapshot, mod and discord message tables

Revision ID: 7c2e4a9d1b30
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e4a9d1b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the snapshot store and the lobby → message mapping."""
    op.create_table(
        "lobby_snapshots",
        sa.Column("time", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("lobby_id", sa.String(64), primary_key=True),
        sa.Column("host_user_id", sa.String(32), nullable=False),
        sa.Column("server_name", sa.Text(), nullable=False),
        sa.Column("server_name_san", sa.Text(), nullable=True),
        sa.Column("global_mission_seed", sa.BigInteger(), nullable=True),
        sa.Column("mission_seed", sa.BigInteger(), nullable=True),
        sa.Column("difficulty", sa.Integer(), nullable=False),
        sa.Column("gamestate", sa.Integer(), nullable=True),
        sa.Column("player_count", sa.Integer(), nullable=True),
        sa.Column("is_full", sa.Integer(), nullable=True),
        sa.Column("region", sa.String(32), nullable=False),
        sa.Column("start", sa.String(64), nullable=True),
        sa.Column("classes", sa.String(64), nullable=True),
        sa.Column("class_lock", sa.Integer(), nullable=True),
        sa.Column("mission_structure", sa.Text(), nullable=True),
        sa.Column("password_required", sa.Integer(), nullable=True),
        sa.Column("p2p_address", sa.String(64), nullable=True),
        sa.Column("p2p_port", sa.Integer(), nullable=True),
        sa.Column("distance", sa.Float(), nullable=True),
    )
    op.create_index(
        "ix_lobby_snapshots_lobby_time", "lobby_snapshots", ["lobby_id", "time"]
    )

    op.create_table(
        "mods",
        sa.Column("mod_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("category", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )

    op.create_table(
        "lobby_mods",
        sa.Column("time", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("lobby_id", sa.String(64), primary_key=True),
        sa.Column(
            "mod_id",
            sa.BigInteger(),
            sa.ForeignKey("mods.mod_id"),
            primary_key=True,
            autoincrement=False,
        ),
        sa.Column("version", sa.String(32), nullable=True),
        sa.Column("category", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["time", "lobby_id"],
            ["lobby_snapshots.time", "lobby_snapshots.lobby_id"],
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_lobby_mods_mod_lobby_time", "lobby_mods", ["mod_id", "lobby_id", "time"]
    )

    op.create_table(
        "discord_messages",
        sa.Column("message_id", sa.String(32), primary_key=True),
        sa.Column("lobby_id", sa.String(64), nullable=False),
        sa.Column("last_updated", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_discord_messages_lobby_id", "discord_messages", ["lobby_id"]
    )


def downgrade() -> None:
    """Drop all Rigwatch tables."""
    op.drop_index("ix_discord_messages_lobby_id", table_name="discord_messages")
    op.drop_table("discord_messages")
    op.drop_index("ix_lobby_mods_mod_lobby_time", table_name="lobby_mods")
    op.drop_table("lobby_mods")
    op.drop_table("mods")
    op.drop_index("ix_lobby_snapshots_lobby_time", table_name="lobby_snapshots")
    op.drop_table("lobby_snapshots")
