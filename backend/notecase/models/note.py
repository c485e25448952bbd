"""
Notecase Backend — Note SQLAlchemy Model
==========================================

What:  ORM model representing the `notes` table.
How:   Inherits from SQLAlchemy's DeclarativeBase; Alembic reads this for migrations.
Who:   Used only by SqlNoteRepository, which converts rows to/from the
       pydantic Note domain model.

Table Design:
    - (owner_id, note_id) composite primary key: owner is the partition,
      note_id the sort key. This pair is the only lookup key.
    - The attachment is flattened into four nullable columns. blob_key NULL
      means the note has no attachment.
    - file_url caches the signed URL issued at write time; it expires and
      is not authoritative.
    - created_at is set once on create and never updated.

    Index on (owner_id, created_at):
        Serves "list everything for this owner, newest first".
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notecase.database import Base


class NoteRecord(Base):
    """
    One row per note.

    Lifecycle:
        1. Inserted by NoteService.create_note (via repository.put)
        2. title/content/attachment columns patched by NoteService.update_note
        3. Deleted by NoteService.delete_note after the blob delete was attempted
    """

    __tablename__ = "notes"

    # ── Key ───────────────────────────────────────────────────────────────
    owner_id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
        comment="Owner partition key",
    )
    note_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="UUID4 string assigned on create",
    )

    # ── Body ──────────────────────────────────────────────────────────────
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Attachment ────────────────────────────────────────────────────────
    blob_key: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        default=None,
        comment="Attachment store key; NULL when the note has no attachment",
    )
    file_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True, default=None)
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)
    file_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Signed URL issued at write time (cache only, expires)",
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="When this note was created (UTC)",
    )

    __table_args__ = (
        Index("idx_notes_owner_created_at", "owner_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<NoteRecord(owner_id='{self.owner_id}', note_id='{self.note_id}', "
            f"blob_key={self.blob_key!r})>"
        )
