"""
Agency network realtime module.

Tenant-scoped change subscriptions over Supabase Realtime.
"""

from .feed import ChangeFeed

__all__ = ["ChangeFeed"]
