"""
Agency network framework integrations.

Provides adapters for web frameworks.
"""

# FastAPI adapter is imported conditionally to avoid requiring fastapi
# as a hard dependency

__all__ = []

try:
    from .fastapi import AgencyNetworkFastAPI, create_verification_router, get_network

    __all__.extend(["AgencyNetworkFastAPI", "create_verification_router", "get_network"])
except ImportError:
    pass
