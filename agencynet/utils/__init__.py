"""Shared helpers: Supabase wrapper, logging setup, time arithmetic."""
