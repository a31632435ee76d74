"""
Storage Package.

This package manages persistence of the score ledger.

Modules:
- database: Engine, sessions and schema creation
- models/: ORM models
- repositories/: Data access layer
"""

from storage.database import Database

__all__ = ["Database"]
