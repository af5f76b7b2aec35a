"""
TallyHub Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (execution order, outermost first):
    Request → [Timeout] → [Rate Limit] → [Request ID] → [Logging]
            → [Body Size] → [Security Headers] → [GZip] → [CORS] → Route Handler

    1. Timeout first: the budget covers everything below it
    2. Rate Limit: reject abusive clients before any other work
    3. Request ID: correlation ID for logs and the response header
    4. Logging: one line per request, with that ID
    5. Body Size: refuse oversized uploads before the body is read
    6. Security Headers, GZip, CORS: response shaping
"""
