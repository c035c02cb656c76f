"""Realtime feed adapters."""

from swipematch.infrastructure.adapters.realtime.supabase_realtime_feed import (
    SupabaseRealtimeFeed,
    SupabaseSubscription,
    extract_record,
)

__all__: list[str] = ["SupabaseRealtimeFeed", "SupabaseSubscription", "extract_record"]
