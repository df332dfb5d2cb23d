"""
FastAPI integration for the agency network.

Provides client lifecycle management and the public invitation
verification endpoint, which an invitee calls before having an account.

Example:
    ```python
    from fastapi import FastAPI
    from agencynet.integrations.fastapi import AgencyNetworkFastAPI, create_verification_router

    app = FastAPI()
    integration = AgencyNetworkFastAPI(app)
    app.include_router(create_verification_router(integration))

    # POST /verify-invitation {"token": "..."}
    ```
"""

from contextvars import ContextVar
from typing import Any, Dict, Optional

try:
    from fastapi import APIRouter, Body, FastAPI, HTTPException
except ImportError:
    raise ImportError(
        "FastAPI is required for this integration. "
        "Install it with: pip install agency-network[fastapi]"
    )

from ..client import AgencyNetwork

_network_ctx: ContextVar[Optional[AgencyNetwork]] = ContextVar("agency_network", default=None)


class AgencyNetworkFastAPI:
    """
    FastAPI integration for the agency network.

    Provides:
    - Automatic AgencyNetwork client lifecycle management
    - Dependency injection of the client

    Example:
        ```python
        app = FastAPI()
        integration = AgencyNetworkFastAPI(app)

        # Or manually without app events
        integration = AgencyNetworkFastAPI()
        await integration.setup()
        # ... later
        await integration.teardown()
        ```
    """

    def __init__(
        self,
        app: Optional[FastAPI] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        network: Optional[AgencyNetwork] = None,
    ) -> None:
        """
        Initialize the integration.

        Args:
            app: FastAPI application (optional, for automatic lifecycle)
            supabase_url: Supabase URL (optional, loads from env)
            supabase_key: Supabase key (optional, loads from env)
            network: An already created client to serve instead
        """
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self._network: Optional[AgencyNetwork] = network
        self._owns_network = network is None

        if network is not None:
            _network_ctx.set(network)

        if app:
            self._setup_lifespan(app)

    def _setup_lifespan(self, app: FastAPI) -> None:
        """Create the client on startup and close it on shutdown."""

        @app.on_event("startup")
        async def startup() -> None:
            await self.setup()

        @app.on_event("shutdown")
        async def shutdown() -> None:
            await self.teardown()

    async def setup(self) -> None:
        """Initialize the AgencyNetwork client."""
        if self._network is None:
            self._network = await AgencyNetwork.create(
                supabase_url=self.supabase_url,
                supabase_key=self.supabase_key,
            )
            self._owns_network = True
        _network_ctx.set(self._network)

    async def teardown(self) -> None:
        """Close the client if this integration created it."""
        if self._network and self._owns_network:
            await self._network.close()
            self._network = None
        _network_ctx.set(None)

    @property
    def network(self) -> AgencyNetwork:
        """Get the AgencyNetwork instance."""
        if not self._network:
            raise RuntimeError("AgencyNetwork not initialized. Call setup() first.")
        return self._network


def create_verification_router(
    integration: AgencyNetworkFastAPI,
    path: str = "/verify-invitation",
) -> APIRouter:
    """
    Router with the public invitation verification endpoint.

    The endpoint never mutates anything: unknown, resolved and expired
    tokens all answer ``{"valid": false, "message": ...}``. A request
    without a token answers HTTP 400.
    """
    router = APIRouter(tags=["invitations"])

    @router.post(path)
    async def verify_invitation(payload: Optional[Dict[str, Any]] = Body(None)) -> Dict[str, Any]:
        token = (payload or {}).get("token")
        if not token or not isinstance(token, str):
            raise HTTPException(status_code=400, detail="Token is required")

        result = await integration.network.invitations.verify(token)
        return result.model_dump(mode="json", exclude_none=True)

    return router


def get_network() -> AgencyNetwork:
    """
    Dependency to get the AgencyNetwork instance.

    Example:
        ```python
        @app.get("/agencies/{agency_id}/agents")
        async def list_agents(agency_id: UUID, network: AgencyNetwork = Depends(get_network)):
            return await network.memberships.list(agency_id)
        ```
    """
    network = _network_ctx.get()
    if not network:
        raise RuntimeError(
            "AgencyNetwork not initialized. Use AgencyNetworkFastAPI or call setup()."
        )
    return network
