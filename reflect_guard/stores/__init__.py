"""Stores layer — Collaborator contracts and the SQLite reference backend."""

from reflect_guard.stores.protocols import AuthProvider, AuthUser, PostStore, ProfileStore
from reflect_guard.stores.sqlite import SQLiteAppStore

__all__ = [
    "AuthProvider",
    "AuthUser",
    "PostStore",
    "ProfileStore",
    "SQLiteAppStore",
]
