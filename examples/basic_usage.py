"""
Basic agency network usage example.

This example walks through the three lifecycles:
- Inviting an agent and accepting the invitation
- Requesting a collaboration with a developer and approving it
- Sharing a property with selected agents, then with the whole team

The agency, agent, developer and property ids below must exist in your
Supabase project (profiles and properties tables).

Run with:
    python examples/basic_usage.py
"""

import asyncio
import os
from uuid import UUID

from agencynet import AgencyNetwork
from agencynet.utils.log import configure_logging

AGENCY_ID = UUID(os.environ["EXAMPLE_AGENCY_ID"])
AGENT_ID = UUID(os.environ["EXAMPLE_AGENT_ID"])
AGENT_EMAIL = os.environ["EXAMPLE_AGENT_EMAIL"]
DEVELOPER_ID = UUID(os.environ["EXAMPLE_DEVELOPER_ID"])
PROPERTY_ID = UUID(os.environ["EXAMPLE_PROPERTY_ID"])


async def main():
    # Create client (loads config from .env)
    network = await AgencyNetwork.create()
    configure_logging(network.config)

    try:
        # =================================================================
        # 1. Invite an agent
        # =================================================================
        print("Inviting agent...")

        invite = await network.invitations.issue(
            agency_id=AGENCY_ID,
            email=AGENT_EMAIL,
            full_name="Jane Agent",
        )
        print(f"  Invitation {invite.id} expires {invite.expires_at:%Y-%m-%d}")
        print(f"  Link: {network.invitations.invite_link(invite)}")

        # What the invitee sees before signing in
        result = await network.invitations.verify(invite.token)
        print(f"  Valid: {result.valid}, from {result.agency_name}")

        # =================================================================
        # 2. Accept and list the team
        # =================================================================
        print("\nAccepting invitation...")

        await network.invitations.accept(invite.token, AGENT_ID)

        for link in await network.memberships.list(AGENCY_ID):
            name = link.agent.full_name if link.agent else link.agent_id
            print(f"  {name}: {link.status.value}")

        # =================================================================
        # 3. Collaborate with a developer
        # =================================================================
        print("\nRequesting collaboration...")

        contract = await network.contracts.request(
            DEVELOPER_ID,
            AGENCY_ID,
            {
                "agency_registration_url": "https://files.example.com/registration.pdf",
                "agency_license_url": "https://files.example.com/license.pdf",
                "agency_signed_contract_url": "https://files.example.com/signed.pdf",
            },
            project_name="Marina Heights",
        )
        print(f"  Contract {contract.id}: {contract.status.value}")

        contract = await network.contracts.review(
            DEVELOPER_ID,
            AGENCY_ID,
            "active",
            counter_signed_doc_url="https://files.example.com/countersigned.pdf",
        )
        state = network.contracts.collaboration_state(contract)
        print(f"  Developer decision: {state.value}")

        # =================================================================
        # 4. Share a property
        # =================================================================
        print("\nSharing property...")

        diff = await network.sharing.reconcile(PROPERTY_ID, AGENCY_ID, [AGENT_ID])
        print(f"  Added {len(diff.added)}, removed {len(diff.removed)}")

        await network.sharing.set_broadcast(PROPERTY_ID, AGENCY_ID, True)
        visibility = await network.sharing.effective_visibility(PROPERTY_ID, AGENCY_ID)
        print(f"  Broadcast: {visibility.broadcast}")

        print("\nDone!")

    finally:
        await network.close()


if __name__ == "__main__":
    asyncio.run(main())
