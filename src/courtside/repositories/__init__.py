"""Database repository helpers.

Every function takes the caller's ``Session``; transactions are owned by the
services.
"""

from courtside.repositories.schema import ensure_schema

__all__ = ["ensure_schema"]
