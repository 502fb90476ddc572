"""
ReviewGate utilities.
"""

from .supabase import ReviewGateSupabaseClient, create_supabase_client

__all__ = [
    "ReviewGateSupabaseClient",
    "create_supabase_client",
]
