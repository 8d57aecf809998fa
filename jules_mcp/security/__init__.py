"""Access control."""

from .repositories import RepositoryAccessError, RepositoryValidator

__all__ = ["RepositoryAccessError", "RepositoryValidator"]
