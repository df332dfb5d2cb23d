"""
Invitation ledger for the agency network.

Handles issuing, resending, verifying and resolving agent invitations.
Validity is computed at every read as ``status == pending and now <
expires_at``; nothing rewrites the status when an invitation expires.

Accept and decline are sagas: a conditional status update guarded by
``status = pending`` followed by the membership link, the profile
association and a notification, each written idempotently.
"""

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID, uuid4

from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    ConflictError,
    DuplicateInvitationError,
    ExpiredInvitationError,
    NotFoundError,
    PartialFailureError,
    StaleTransitionError,
    ValidationError,
    is_unique_violation,
)
from ..memberships.models import MembershipStatus
from ..notifications.models import NotificationType
from ..sagas.models import SagaStep
from ..utils.log import mask_token
from .models import (
    AgentInvitation,
    InvitationPayload,
    InvitationStatus,
    InvitationVerification,
)

if TYPE_CHECKING:
    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)

ENTITY = "invitation"


class InvitationManager:
    """
    Manages agent invitation operations.

    The invitation flow:
    1. Agency issues an invitation (email, name, phone/whatsapp)
    2. A fresh token is stored with a 7 day expiry
    3. Existing accounts get a pending membership link and an in-product alert
    4. The recipient verifies the token (no account needed)
    5. The recipient accepts or declines exactly once
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize InvitationManager.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client

    def _generate_token(self) -> str:
        """Generate an unguessable bearer token."""
        return secrets.token_urlsafe(self.network.config.token_bytes)

    def invite_link(self, invitation: AgentInvitation) -> str:
        """Signup link carrying the invitation token."""
        return f"{self.network.config.app_base_url}/signup?invitation={invitation.token}"

    async def issue(
        self,
        agency_id: UUID,
        email: str,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
        whatsapp: Optional[str] = None,
    ) -> AgentInvitation:
        """
        Issue an invitation to join an agency.

        Args:
            agency_id: Inviting agency
            email: Email address to invite
            full_name: Invitee's name
            phone: Phone number (defaults to ``whatsapp``)
            whatsapp: WhatsApp number

        Returns:
            The pending AgentInvitation

        Raises:
            ValidationError: If the email is malformed
            DuplicateInvitationError: If a pending invitation exists for (agency, email)
            ConflictError: If the invitee is already an active agent of the agency
            PartialFailureError: If the row was written but a side effect failed

        Example:
            ```python
            invite = await network.invitations.issue(
                agency_id=agency.id,
                email="agent@example.com",
                full_name="Jane Agent",
                whatsapp="+971500000000",
            )
            print(network.invitations.invite_link(invite))
            ```
        """
        try:
            payload = InvitationPayload(
                agency_id=agency_id,
                email=email,
                full_name=full_name,
                phone=phone or whatsapp,
                whatsapp=whatsapp,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid invitation: {exc}") from exc

        account_id = await self._check_issuable(payload)

        now = self.network.now()
        row = {
            "id": str(uuid4()),
            "agency_id": str(payload.agency_id),
            "email": payload.email,
            "full_name": payload.full_name,
            "phone": payload.phone,
            "whatsapp": payload.whatsapp,
            "token": self._generate_token(),
            "status": InvitationStatus.PENDING.value,
            "linked_user_id": None,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "expires_at": (now + timedelta(days=self.network.config.invitation_ttl_days)).isoformat(),
        }
        context = {
            "agency_id": row["agency_id"],
            "email": row["email"],
            "account_id": str(account_id) if account_id else None,
        }

        await self.network.sagas.run(
            ENTITY, UUID(row["id"]), "issue", self._issue_steps(row, context), context=context
        )

        invitation = AgentInvitation(**row)
        logger.info(
            "Issued invitation %s to %s for agency %s (token %s)",
            invitation.id, invitation.email, invitation.agency_id, mask_token(invitation.token),
        )
        return invitation

    async def _check_issuable(
        self,
        payload: InvitationPayload,
        replacing: Optional[UUID] = None,
    ) -> Optional[UUID]:
        """
        Reject an invitation that could not be written.

        Returns:
            The invitee's account id, if the email is registered
        """
        existing = await self.find_pending(payload.agency_id, payload.email)
        if existing and existing.id != replacing:
            raise DuplicateInvitationError(payload.agency_id, payload.email)

        account_id = await self.network.memberships.find_account_id(payload.email)
        if account_id:
            link = await self.network.memberships.get(payload.agency_id, account_id)
            if link and link.status == MembershipStatus.ACTIVE:
                raise ConflictError(f"{payload.email} is already an active agent of this agency")

        return account_id

    def _issue_steps(self, row: Dict[str, Any], context: Dict[str, Any]) -> List[SagaStep]:
        invitation_id = UUID(row["id"])
        agency_id = UUID(row["agency_id"])

        async def insert_row() -> None:
            try:
                await self.client.table("agent_invitations").insert(row).execute()
            except APIError as exc:
                if is_unique_violation(exc):
                    existing = await self.get(invitation_id)
                    if existing is not None and existing.token == row["token"]:
                        return
                    raise DuplicateInvitationError(agency_id, row["email"]) from exc
                raise

        steps = [SagaStep("invitation_row", insert_row)]

        if context.get("account_id"):
            account_id = UUID(context["account_id"])

            async def link_pending() -> None:
                await self.network.memberships.upsert(
                    agency_id, account_id, MembershipStatus.PENDING
                )

            async def notify_invitee() -> None:
                agency_name = await self.network.memberships.display_name(agency_id)
                await self.network.notifications.send(
                    recipient_id=account_id,
                    type=NotificationType.ALERT,
                    title="You have been invited to join an agency",
                    message=f"{agency_name} has invited you to join their team.",
                    link_url=f"/notifications?agency_id={agency_id}",
                    agency_id=agency_id,
                    token=row["token"],
                    dedupe_key=f"invitation:{invitation_id}:issue",
                )

            steps.append(SagaStep("membership_link", link_pending))
            steps.append(SagaStep("notification", notify_invitee))

        return steps

    async def get(self, invitation_id: UUID) -> Optional[AgentInvitation]:
        """
        Get an invitation by ID.

        Returns:
            AgentInvitation instance or None if not found
        """
        result = await self.client.table("agent_invitations").select("*").eq(
            "id", str(invitation_id)
        ).execute()

        if not result.data:
            return None

        return AgentInvitation(**result.data[0])

    async def get_by_token(self, token: str) -> Optional[AgentInvitation]:
        """
        Get an invitation by its token.

        Returns:
            AgentInvitation instance or None if not found
        """
        result = await self.client.table("agent_invitations").select("*").eq(
            "token", token
        ).execute()

        if not result.data:
            return None

        return AgentInvitation(**result.data[0])

    async def find_pending(self, agency_id: UUID, email: str) -> Optional[AgentInvitation]:
        """The pending invitation for (agency, email), if any."""
        result = await self.client.table("agent_invitations").select("*").eq(
            "agency_id", str(agency_id)
        ).eq("email", email.strip().lower()).eq(
            "status", InvitationStatus.PENDING.value
        ).execute()

        if not result.data:
            return None

        return AgentInvitation(**result.data[0])

    async def list_by_agency(
        self,
        agency_id: UUID,
        status: Optional[InvitationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AgentInvitation]:
        """
        List invitations issued by an agency, newest first.

        Args:
            agency_id: Agency UUID
            status: Only invitations in this status
            limit: Maximum number of invitations to return
            offset: Number of invitations to skip
        """
        query = self.client.table("agent_invitations").select("*").eq(
            "agency_id", str(agency_id)
        )

        if status:
            query = query.eq("status", InvitationStatus(status).value)

        result = await query.limit(limit).offset(offset).order(
            "created_at", desc=True
        ).execute()

        return [AgentInvitation(**row) for row in result.data]

    async def count_by_agency(
        self,
        agency_id: UUID,
        status: Optional[InvitationStatus] = None,
    ) -> int:
        """Count invitations of an agency, optionally by status."""
        query = self.client.table("agent_invitations").select(
            "id", count="exact"
        ).eq("agency_id", str(agency_id))

        if status:
            query = query.eq("status", InvitationStatus(status).value)

        result = await query.execute()
        return result.count or 0

    async def resend(self, invitation_id: UUID) -> AgentInvitation:
        """
        Replace an invitation with a fresh one carrying the same payload.

        The old row is deleted first, so the previously distributed token
        stops verifying; the replacement gets a new token and expiry.

        Raises:
            NotFoundError: If the invitation does not exist
            StaleTransitionError: If the invitation was already accepted
            DuplicateInvitationError: If another invitation is pending for (agency, email)
            ConflictError: If the invitee became an active agent of the agency
            PartialFailureError: If the old row was deleted but re-issuing failed
        """
        invitation = await self.get(invitation_id)

        if not invitation:
            raise NotFoundError(f"Invitation {invitation_id} not found")

        if invitation.status == InvitationStatus.ACCEPTED:
            raise StaleTransitionError(
                ENTITY,
                invitation_id,
                expected="pending or refused",
                actual=invitation.status.value,
                message="Cannot resend an accepted invitation",
            )

        payload = invitation.payload()
        await self._check_issuable(payload, replacing=invitation_id)

        await self.network.sagas.clear(ENTITY, invitation_id)
        await self.client.table("agent_invitations").delete().eq(
            "id", str(invitation_id)
        ).execute()
        logger.info("Deleted invitation %s for resend", invitation_id)

        try:
            return await self.issue(
                agency_id=payload.agency_id,
                email=payload.email,
                full_name=payload.full_name,
                phone=payload.phone,
                whatsapp=payload.whatsapp,
            )
        except PartialFailureError:
            raise
        except Exception as exc:
            raise PartialFailureError(
                transition="resend",
                entity_id=invitation_id,
                failed_step="issue",
                completed_steps=["delete_previous"],
                cause=exc,
                context=payload.model_dump(mode="json"),
            ) from exc

    async def revoke(self, invitation_id: UUID) -> None:
        """
        Revoke (delete) an invitation that was not accepted.

        Raises:
            NotFoundError: If the invitation does not exist
            StaleTransitionError: If the invitation was already accepted
        """
        invitation = await self.get(invitation_id)

        if not invitation:
            raise NotFoundError(f"Invitation {invitation_id} not found")

        if invitation.status == InvitationStatus.ACCEPTED:
            raise StaleTransitionError(
                ENTITY,
                invitation_id,
                expected="pending or refused",
                actual=invitation.status.value,
                message="Cannot revoke an accepted invitation",
            )

        await self.network.sagas.clear(ENTITY, invitation_id)
        await self.client.table("agent_invitations").delete().eq(
            "id", str(invitation_id)
        ).execute()
        logger.info("Revoked invitation %s", invitation_id)

    async def verify(self, token: Optional[str]) -> InvitationVerification:
        """
        Verify a bearer token without mutating anything.

        Safe to call for an unauthenticated recipient. An unknown token,
        a resolved invitation and an expired invitation all produce the
        same invalid result.

        Example:
            ```python
            result = await network.invitations.verify(token)
            if result.valid:
                print(f"Join {result.agency_name} as {result.email}")
            ```
        """
        if not token:
            return InvitationVerification.invalid("Token is required")

        invitation = await self.get_by_token(token)

        if invitation is None or not invitation.is_valid_at(self.network.now()):
            return InvitationVerification.invalid()

        return InvitationVerification(
            valid=True,
            invitation_id=invitation.id,
            email=invitation.email,
            agency_id=invitation.agency_id,
            agency_name=await self.network.memberships.display_name(invitation.agency_id),
            expires_at=invitation.expires_at,
        )

    async def accept(self, token: str, acting_user_id: UUID) -> AgentInvitation:
        """
        Accept an invitation and activate the membership.

        Steps, each idempotent:
        1. invitation pending -> accepted (conditional on status = pending)
        2. membership link -> active
        3. the agent's profile -> agency association
        4. notification to the agent

        Calling again after full completion raises StaleTransitionError.
        Calling again after a PartialFailureError, as the same user,
        resumes at the failed step.

        Raises:
            NotFoundError: If the token is unknown
            StaleTransitionError: If the invitation is no longer pending
            ExpiredInvitationError: If the invitation expired
            PartialFailureError: If a step after the status update failed
        """
        return await self._resolve(token, acting_user_id, InvitationStatus.ACCEPTED)

    async def decline(self, token: str, acting_user_id: UUID) -> AgentInvitation:
        """
        Decline an invitation.

        Steps: invitation pending -> refused, membership link -> inactive,
        notification to the agent. Same retry semantics as accept().
        """
        return await self._resolve(token, acting_user_id, InvitationStatus.REFUSED)

    async def resume(self, invitation_id: UUID, transition: str = "issue") -> AgentInvitation:
        """
        Finish an interrupted transition of an invitation.

        Args:
            invitation_id: Invitation UUID
            transition: "issue", "accept" or "decline"

        Raises:
            NotFoundError: If the transition never started or the row is gone
        """
        progress = await self.network.sagas.get(ENTITY, invitation_id, transition)
        if progress is None:
            raise NotFoundError(f"No {transition} in progress for invitation {invitation_id}")

        invitation = await self.get(invitation_id)
        if invitation is None:
            raise NotFoundError(f"Invitation {invitation_id} not found")

        if transition == "issue":
            # the token is read back from the invitation row, never from progress
            await self.network.sagas.run(
                ENTITY, invitation_id, transition,
                self._issue_steps(invitation.model_dump(mode="json"), progress.context),
                context=progress.context,
            )
            return invitation
        return await self._resolve(
            invitation.token,
            UUID(progress.context["actor_id"]),
            InvitationStatus(progress.context["target"]),
        )

    async def _resolve(
        self,
        token: str,
        acting_user_id: UUID,
        target: InvitationStatus,
    ) -> AgentInvitation:
        transition = "accept" if target == InvitationStatus.ACCEPTED else "decline"

        invitation = await self.get_by_token(token)
        if invitation is None:
            raise NotFoundError("Invitation not found")

        progress = await self.network.sagas.get(ENTITY, invitation.id, transition)
        if progress is not None and progress.completed:
            current = await self.get(invitation.id)
            raise StaleTransitionError(
                ENTITY,
                invitation.id,
                expected=InvitationStatus.PENDING.value,
                actual=current.status.value if current else "deleted",
            )

        resuming = (
            progress is not None
            and progress.started
            and not progress.completed
            and progress.context.get("actor_id") == str(acting_user_id)
        )

        if not resuming:
            if not invitation.status.can_transition_to(target):
                raise StaleTransitionError(
                    ENTITY,
                    invitation.id,
                    expected=InvitationStatus.PENDING.value,
                    actual=invitation.status.value,
                )
            if not invitation.is_valid_at(self.network.now()):
                raise ExpiredInvitationError(invitation.id)

        context = {
            "actor_id": str(acting_user_id),
            "agency_id": str(invitation.agency_id),
            "target": target.value,
        }
        steps = await self._resolve_steps(invitation, acting_user_id, target)

        await self.network.sagas.run(ENTITY, invitation.id, transition, steps, context=context)

        logger.info(
            "Invitation %s %s by %s", invitation.id, target.value, acting_user_id
        )
        return invitation.model_copy(
            update={"status": target, "linked_user_id": acting_user_id}
        )

    async def _resolve_steps(
        self,
        invitation: AgentInvitation,
        acting_user_id: UUID,
        target: InvitationStatus,
    ) -> List[SagaStep]:
        accepted = target == InvitationStatus.ACCEPTED
        agency_name = await self.network.memberships.display_name(invitation.agency_id)

        async def mark_status() -> None:
            now = self.network.now()
            result = await self.client.table("agent_invitations").update({
                "status": target.value,
                "linked_user_id": str(acting_user_id),
                "updated_at": now.isoformat(),
            }).eq("id", str(invitation.id)).eq(
                "status", InvitationStatus.PENDING.value
            ).gt("expires_at", now.isoformat()).execute()

            if result.data:
                return

            current = await self.get(invitation.id)
            if current is None:
                raise NotFoundError(f"Invitation {invitation.id} not found")
            if current.status != InvitationStatus.PENDING:
                raise StaleTransitionError(
                    ENTITY,
                    invitation.id,
                    expected=InvitationStatus.PENDING.value,
                    actual=current.status.value,
                )
            raise ExpiredInvitationError(invitation.id)

        async def update_link() -> None:
            await self.network.memberships.upsert(
                invitation.agency_id,
                acting_user_id,
                MembershipStatus.ACTIVE if accepted else MembershipStatus.INACTIVE,
            )

        async def associate_profile() -> None:
            await self.network.memberships.set_agency_association(
                acting_user_id, invitation.agency_id
            )

        async def notify() -> None:
            if accepted:
                title = "Agency Invitation Accepted"
                message = f"You have joined {agency_name}!"
            else:
                title = "Agency Invitation Declined"
                message = f"You declined the invitation to join {agency_name}."

            await self.network.notifications.send(
                recipient_id=acting_user_id,
                type=NotificationType.SYSTEM,
                title=title,
                message=message,
                agency_id=invitation.agency_id,
                dedupe_key=f"invitation:{invitation.id}:{target.value}",
            )

        steps = [
            SagaStep("invitation_status", mark_status),
            SagaStep("membership_link", update_link),
        ]
        if accepted:
            steps.append(SagaStep("profile_agency", associate_profile))
        steps.append(SagaStep("notification", notify))
        return steps
