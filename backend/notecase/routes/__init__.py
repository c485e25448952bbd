# Routes package init
"""
Notecase Backend — API Routes Package
=======================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - notes.py:   GET    /api/notes                (list the owner's notes)
                  POST   /api/notes                (create, JSON or multipart)
                  PUT    /api/notes?noteId=        (partial update)
                  DELETE /api/notes?noteId=        (delete with blob cleanup)
                  GET    /api/files/{key}          (signed local attachment download)
    - health.py:  GET    /health                   (service health check)

Routes handle HTTP concerns only (body size, query params, status codes);
decoding and store orchestration live in NoteService.
"""
