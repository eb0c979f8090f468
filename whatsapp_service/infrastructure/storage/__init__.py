from .supabase_store import (
    SupabaseObjectStore,
    SupabaseStatusStore,
    create_supabase_client,
)

__all__ = ['SupabaseObjectStore', 'SupabaseStatusStore', 'create_supabase_client']
