# Middleware package init
"""
Notecase Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [API Key] → [GZip] → [CORS] → Route Handler

    1. Request ID first, so every later log line and error body carries it
    2. Logging sees the final status, including API key rejections
    3. API Key rejects unauthenticated calls before any body is read

    Responses travel the chain in reverse, which is how X-Request-ID ends
    up on every response.
"""
