"""Datastore access."""

from .supabase import SupabaseClient, SupabaseError

__all__ = ["SupabaseClient", "SupabaseError"]
