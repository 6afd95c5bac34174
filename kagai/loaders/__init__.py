"""Persistence backends (Supabase and local JSON fallback)."""

from .local_store import LocalStore
from .supabase_store import SupabaseStore, is_missing_table_error, is_no_rows_error

__all__ = ["LocalStore", "SupabaseStore", "is_missing_table_error", "is_no_rows_error"]
