"""
FastAPI application example with the agency network.

This example demonstrates:
- The public invitation verification endpoint
- Agency routes using the injected AgencyNetwork client
- Mapping lifecycle errors to HTTP status codes

Run with:
    uvicorn examples.fastapi_app:app --reload
"""

from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr

from agencynet import AgencyNetwork
from agencynet.exceptions import (
    AgencyNetworkError,
    ConflictError,
    NotFoundError,
    PartialFailureError,
    StaleTransitionError,
    ValidationError,
)
from agencynet.integrations.fastapi import (
    AgencyNetworkFastAPI,
    create_verification_router,
    get_network,
)

# =================================================================
# FastAPI App Setup
# =================================================================

app = FastAPI(
    title="Agency Network Example API",
    description="Example API demonstrating the agency network lifecycle",
    version="1.0.0",
)

integration = AgencyNetworkFastAPI(app)
app.include_router(create_verification_router(integration))


# =================================================================
# Request Models
# =================================================================


class InviteCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    whatsapp: Optional[str] = None


class InviteAnswer(BaseModel):
    token: str
    user_id: UUID


class SharingSettings(BaseModel):
    share_with_all: bool
    agent_ids: List[UUID] = []


# =================================================================
# Error mapping
# =================================================================

STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    StaleTransitionError: 409,
    PartialFailureError: 503,
}


@app.exception_handler(AgencyNetworkError)
async def network_error_handler(request: Request, exc: AgencyNetworkError):
    status = next((code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)), 400)
    body = {"detail": str(exc)}
    if isinstance(exc, ValidationError) and exc.missing:
        body["missing"] = exc.missing
    return JSONResponse(status_code=status, content=body)


# =================================================================
# Agency Routes
# =================================================================


@app.post("/agencies/{agency_id}/invitations")
async def invite_agent(
    agency_id: UUID,
    body: InviteCreate,
    network: AgencyNetwork = Depends(get_network),
):
    invite = await network.invitations.issue(
        agency_id, body.email, full_name=body.full_name, whatsapp=body.whatsapp
    )
    return {"id": str(invite.id), "link": network.invitations.invite_link(invite)}


@app.get("/agencies/{agency_id}/agents")
async def list_agents(
    agency_id: UUID,
    search: Optional[str] = None,
    network: AgencyNetwork = Depends(get_network),
):
    links = await network.memberships.list(agency_id, search=search)
    return [link.model_dump(mode="json") for link in links]


@app.delete("/agencies/{agency_id}/agents/{agent_id}", status_code=204)
async def remove_agent(
    agency_id: UUID,
    agent_id: UUID,
    network: AgencyNetwork = Depends(get_network),
):
    await network.memberships.remove(agency_id, agent_id)


@app.put("/agencies/{agency_id}/properties/{property_id}/sharing")
async def save_sharing(
    agency_id: UUID,
    property_id: UUID,
    body: SharingSettings,
    network: AgencyNetwork = Depends(get_network),
):
    visibility = await network.sharing.save_settings(
        property_id, agency_id, body.share_with_all, body.agent_ids
    )
    return visibility.model_dump(mode="json")


# =================================================================
# Invitee Routes
# =================================================================


@app.post("/invitations/accept")
async def accept_invitation(body: InviteAnswer, network: AgencyNetwork = Depends(get_network)):
    invite = await network.invitations.accept(body.token, body.user_id)
    return {"agency_id": str(invite.agency_id), "status": invite.status.value}


@app.post("/invitations/decline")
async def decline_invitation(body: InviteAnswer, network: AgencyNetwork = Depends(get_network)):
    invite = await network.invitations.decline(body.token, body.user_id)
    return {"status": invite.status.value}


# =================================================================
# Developer Routes
# =================================================================


@app.get("/developers/{developer_id}/collaborations")
async def list_collaborations(
    developer_id: UUID,
    sort: str = "date",
    network: AgencyNetwork = Depends(get_network),
):
    try:
        contracts = await network.contracts.list_by_developer(developer_id, sort=sort)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown sort: {sort}")

    return [
        {
            **contract.model_dump(mode="json"),
            "state": network.contracts.collaboration_state(contract).value,
        }
        for contract in contracts
    ]
