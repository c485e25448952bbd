"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates the `notes` table keyed by (owner_id, note_id), with the
       attachment flattened into four nullable columns.

Rollback: downgrade() drops the table (all notes are lost; blobs stay in storage).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",

        sa.Column("owner_id", sa.String(128), nullable=False, comment="Owner partition key"),
        sa.Column("note_id", sa.String(36), nullable=False, comment="UUID4 string assigned on create"),

        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),

        # NULL blob_key means no attachment; the other three follow it
        sa.Column(
            "blob_key",
            sa.String(1024),
            nullable=True,
            comment="Attachment store key; NULL when the note has no attachment",
        ),
        sa.Column("file_name", sa.String(512), nullable=True),
        sa.Column("content_type", sa.String(255), nullable=True),
        sa.Column(
            "file_url",
            sa.Text(),
            nullable=True,
            comment="Signed URL issued at write time (cache only, expires)",
        ),

        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this note was created (UTC)",
        ),

        sa.PrimaryKeyConstraint("owner_id", "note_id"),
    )

    # Serves the per-owner listing, newest first
    op.create_index(
        "idx_notes_owner_created_at",
        "notes",
        ["owner_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_notes_owner_created_at", table_name="notes")
    op.drop_table("notes")
