"""Create ID card workflow tables.

Revision ID: 3f6a1d2c9b71
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f6a1d2c9b71"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _holder_columns(*, name_nullable: bool = True) -> list[sa.Column]:
    return [
        sa.Column("register_number", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=name_nullable),
        sa.Column("dob", sa.String(32), nullable=True),
        sa.Column("department", sa.String(128), nullable=True),
        sa.Column("year", sa.String(16), nullable=True),
        sa.Column("section", sa.String(16), nullable=True),
        sa.Column("library_code", sa.String(64), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "regnumbers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("register_number", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("register_number"),
    )

    op.create_table(
        "idcards",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_holder_columns(name_nullable=False),
        sa.Column("photo_data", sa.LargeBinary(), nullable=True),
        sa.Column("photo_content_type", sa.String(128), nullable=True),
        sa.Column("photo_filename", sa.String(255), nullable=True),
        sa.Column("status", sa.String(64), nullable=False, server_default="pending"),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("uq_idcards_register_number", "idcards", ["register_number"], unique=True)

    op.create_table(
        "printids",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_holder_columns(),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("uq_printids_register_number", "printids", ["register_number"], unique=True)

    op.create_table(
        "acceptedidcards",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_holder_columns(),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_acceptedidcards_register_number", "acceptedidcards", ["register_number"])

    op.create_table(
        "rejectedidcards",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_holder_columns(),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("uq_rejectedidcards_register_number", "rejectedidcards", ["register_number"], unique=True)

    for table in ("acchistoryid", "rejhistoryids"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            *_holder_columns(),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("copied_at", sa.DateTime(), nullable=False),
            sa.Column("provenance", sa.String(32), nullable=False),
            sa.Column("source_ref", sa.String(128), nullable=False),
            sa.UniqueConstraint("source_ref", name=f"uq_{table}_source_ref"),
        )
        op.create_index(f"idx_{table}_register_number", table, ["register_number"])

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("register_number", sa.String(64), nullable=True),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
    )
    op.create_index("ix_workflow_events_register_number", "workflow_events", ["register_number"])


def downgrade() -> None:
    op.drop_index("ix_workflow_events_register_number", table_name="workflow_events")
    op.drop_table("workflow_events")
    for table in ("rejhistoryids", "acchistoryid"):
        op.drop_index(f"idx_{table}_register_number", table_name=table)
        op.drop_table(table)
    op.drop_index("uq_rejectedidcards_register_number", table_name="rejectedidcards")
    op.drop_table("rejectedidcards")
    op.drop_index("idx_acceptedidcards_register_number", table_name="acceptedidcards")
    op.drop_table("acceptedidcards")
    op.drop_index("uq_printids_register_number", table_name="printids")
    op.drop_table("printids")
    op.drop_index("uq_idcards_register_number", table_name="idcards")
    op.drop_table("idcards")
    op.drop_table("regnumbers")
