"""Shared utilities."""

from .async_helpers import run_sync
from .env_file import EnvFile
from .retry import retry_with_backoff
from .singletons import register_singleton, reset_all_singletons
from .text import smart_truncate

__all__ = [
    "EnvFile",
    "register_singleton",
    "reset_all_singletons",
    "retry_with_backoff",
    "run_sync",
    "smart_truncate",
]
