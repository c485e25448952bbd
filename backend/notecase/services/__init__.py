# Services package init
"""
Notecase Backend — Services Layer
===================================

Service Inventory:
    - multipart: hand-rolled multipart/form-data decoder (pure functions)
    - AttachmentStore (abstract) with LocalAttachmentStore and S3AttachmentStore
    - NoteRepository (abstract) with SqlNoteRepository
    - NoteService: request decoding and cross-store lifecycle of a note
"""
