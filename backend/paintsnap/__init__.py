"""
PaintSnap Backend — Application Package Initializer
====================================================

What: Marks the `paintsnap` directory as a Python package.
Why:  Enables module imports like `from paintsnap.config import Settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows the same layered shape all the way down:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Dependencies (auth, store, DI)    │  ← resolves the canonical user
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← ownership, limits, cascade
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database / Blob store / Identity   │  ← explicit objects on app.state
    └─────────────────────────────────────┘

    Entity hierarchy: User → Project → Area → Photo → Tag.
    Every row below User carries the owner's id.
"""

__version__ = "1.0.0"
