"""
TallyHub Backend — Application Package
========================================

Layered architecture:

    ┌─────────────────────────────────────┐
    │   Middleware (timeout, rate limit)  │  ← cross-cutting concerns
    ├─────────────────────────────────────┤
    │   Routes + validation (API Layer)   │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Business Logic)         │  ← counter, users
    ├─────────────────────────────────────┤
    │   Models & Schemas (Data)           │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (Persistence)            │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
