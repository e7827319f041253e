"""Create stored_collections

Revision ID: 20261019_stored_collections
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_stored_collections"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "stored_collections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("records", sa.JSON(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("name", name="uq_stored_collections_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stored_collections", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_stored_collections_name"), ["name"], unique=False)


def downgrade():
    with op.batch_alter_table("stored_collections", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_stored_collections_name"))
    op.drop_table("stored_collections")
