"""Document store table: one JSON row per user document path

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "stored_documents",
        sa.Column("path", sa.String(512), nullable=False),
        sa.Column("collection", sa.String(512), nullable=False),
        sa.Column("doc_id", sa.String(128), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("path"),
    )
    op.create_index("ix_stored_documents_collection", "stored_documents", ["collection"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_stored_documents_collection", table_name="stored_documents")
    op.drop_table("stored_documents")
