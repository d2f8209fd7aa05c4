"""Relational persistence for switch inventory, caches and config history."""
from .store import Datastore, DEFAULT_DATABASE_URL, utcnow
from .tables import SCHEMA_VERSION, metadata

__all__ = ["Datastore", "DEFAULT_DATABASE_URL", "utcnow", "SCHEMA_VERSION", "metadata"]
