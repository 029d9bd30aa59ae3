"""create documents

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("path", sa.String(length=1024), primary_key=True, nullable=False),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.text("now()")),
    )
    # prefix scans (LIKE 'a/b/%') need pattern ops outside the C collation
    op.create_index(
        "ix_documents_path_pattern",
        "documents",
        ["path"],
        unique=False,
        postgresql_ops={"path": "varchar_pattern_ops"},
    )


def downgrade() -> None:
    op.drop_index("ix_documents_path_pattern", table_name="documents")
    op.drop_table("documents")
