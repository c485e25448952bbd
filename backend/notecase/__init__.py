"""
Notecase Backend — Application Package Initializer
====================================================

Architecture Note:

    ┌─────────────────────────────────────┐
    │   Routes + Middleware (API Layer)   │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     NoteService (orchestration)     │  ← decode, blob/note ordering
    ├──────────────────┬──────────────────┤
    │  AttachmentStore │  NoteRepository  │  ← local disk / S3, SQLAlchemy
    └──────────────────┴──────────────────┘

    The service only sees the two abstract stores, so it is tested with
    in-memory fakes and run against real adapters in production.
"""

__version__ = "1.0.0"
