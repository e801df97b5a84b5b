"""
TourDesk Backend: Application Package Initializer
====================================================

What:  Marks the `app` directory as a Python package.
Who:   Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    This backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, multipart parsing
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Image replacement protocol
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database / Image Store (Storage)  │  ← Async sessions, flat image files
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
