"""
Storage module for Warden.

This module provides SQLite-based persistence for users, projects, documents
and session tokens, and the Predicate type that list queries are scoped by.

Tables:
    - users: Accounts with role and department
    - projects: Projects, optionally scoped to a department
    - documents: Documents, each belonging to a project
    - sessions: Opaque session tokens

Why SQLite?
    - Zero configuration (no server needed)
    - ACID transactions built-in
    - Portable single-file format
"""

from warden.store.db import WardenDB, generate_id
from warden.store.predicate import (
    MATCH_NOTHING,
    UNRESTRICTED,
    CompiledPredicate,
    Predicate,
)

__all__ = [
    "MATCH_NOTHING",
    "UNRESTRICTED",
    "CompiledPredicate",
    "Predicate",
    "WardenDB",
    "generate_id",
]
