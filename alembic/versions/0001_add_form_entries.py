"""add persisted form entries table

Revision ID: 0001_add_form_entries
Revises:
Create Date: 2026-10-18 09:00:00

"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_add_form_entries"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_index(
    inspector: sa.Inspector,
    table_name: str,
    columns: tuple[str, ...],
    *,
    unique: bool | None = None,
) -> bool:
    for index in inspector.get_indexes(table_name):
        index_columns = tuple(index.get("column_names") or ())
        if index_columns != columns:
            continue
        if unique is None or bool(index.get("unique")) == unique:
            return True
    return False


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    table_names = set(inspector.get_table_names())
    created_table = False

    if "form_entries" not in table_names:
        op.create_table(
            "form_entries",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("key", sa.String(length=1000), nullable=False),
            sa.Column("value", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        created_table = True

    if created_table or not _has_index(inspector, "form_entries", ("key",), unique=True):
        op.create_index("ix_form_entries_key", "form_entries", ["key"], unique=True)


def downgrade() -> None:
    raise RuntimeError(
        "Forward-only migration policy: downgrade is not supported for revision 0001_add_form_entries"
    )
