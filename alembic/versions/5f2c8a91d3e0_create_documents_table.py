"""Create documents table

Revision ID: 5f2c8a91d3e0
Revises:
Create Date: 2026-10-19 10:12:44.201318

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5f2c8a91d3e0"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("pk", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("collection", sa.String(length=64), nullable=False),
        sa.Column("doc_id", sa.String(length=64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("pk"),
        sa.UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),
    )
    op.create_index(op.f("ix_documents_collection"), "documents", ["collection"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_documents_collection"), table_name="documents")
    op.drop_table("documents")
