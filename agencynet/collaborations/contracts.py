"""
Collaboration contracts between developers and agencies.

An agency requests a collaboration by submitting three documents; the
developer approves (with a counter-signed contract) or rejects. Approved
contracts need the agency license re-validated every 11 calendar months.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    DuplicateCollaborationError,
    NotFoundError,
    PartialFailureError,
    StaleTransitionError,
    ValidationError,
    is_unique_violation,
)
from ..notifications.models import NotificationType
from ..sagas.models import SagaStep
from .models import (
    DEVELOPER_DOCUMENT,
    STATUS_ORDER,
    CollaborationContract,
    CollaborationState,
    ContractDocuments,
    ContractSort,
    ContractStatus,
    DocumentChecklist,
)

if TYPE_CHECKING:
    from datetime import datetime

    from ..client import AgencyNetwork

logger = logging.getLogger(__name__)

ENTITY = "contract"

CONTRACT_COLUMNS = (
    "*, agency:agency_id(id, full_name, agency_name, email, avatar_url, "
    "registration_number, whatsapp)"
)


class ContractManager:
    """
    Manages developer-agency collaboration contracts.

    Example:
        ```python
        contract = await network.contracts.request(
            developer_id,
            agency_id,
            {
                "agency_registration_url": registration_url,
                "agency_license_url": license_url,
                "agency_signed_contract_url": signed_url,
            },
            project_name="Marina Heights",
        )

        # Developer side
        await network.contracts.review(
            developer_id, agency_id, "active", counter_signed_doc_url=countersigned_url
        )
        ```
    """

    def __init__(self, network: "AgencyNetwork") -> None:
        """
        Initialize ContractManager.

        Args:
            network: AgencyNetwork client instance
        """
        self.network = network
        self.client = network.client

    async def get(self, developer_id: UUID, agency_id: UUID) -> Optional[CollaborationContract]:
        """
        Get the contract for a (developer, agency) pair.

        Returns:
            CollaborationContract or None if the agency never requested
        """
        result = await self.client.table("developer_agency_contracts").select("*").eq(
            "developer_id", str(developer_id)
        ).eq("agency_id", str(agency_id)).execute()

        if not result.data:
            return None

        return CollaborationContract(**result.data[0])

    async def get_by_id(self, contract_id: UUID) -> Optional[CollaborationContract]:
        """Get a contract by ID."""
        result = await self.client.table("developer_agency_contracts").select("*").eq(
            "id", str(contract_id)
        ).execute()

        if not result.data:
            return None

        return CollaborationContract(**result.data[0])

    async def _require(self, developer_id: UUID, agency_id: UUID) -> CollaborationContract:
        contract = await self.get(developer_id, agency_id)
        if contract is None:
            raise NotFoundError(
                f"No collaboration between developer {developer_id} and agency {agency_id}"
            )
        return contract

    async def request(
        self,
        developer_id: UUID,
        agency_id: UUID,
        documents: Union[ContractDocuments, Dict[str, Optional[str]]],
        project_name: Optional[str] = None,
    ) -> CollaborationContract:
        """
        Request a collaboration with a developer.

        Args:
            developer_id: Developer profile UUID
            agency_id: Requesting agency profile UUID
            documents: Registration, license and signed contract URLs
            project_name: Project the request is about (stored in notes)

        Returns:
            The pending CollaborationContract

        Raises:
            ValidationError: If any of the three documents is missing
            DuplicateCollaborationError: If the pair already has a contract
            PartialFailureError: If the row was written but the notification failed
        """
        if not isinstance(documents, ContractDocuments):
            try:
                documents = ContractDocuments(**documents)
            except PydanticValidationError as exc:
                raise ValidationError(f"Invalid documents: {exc}") from exc

        missing = documents.missing()
        if missing:
            raise ValidationError(
                f"Missing required documents: {', '.join(missing)}", missing=missing
            )

        if await self.get(developer_id, agency_id) is not None:
            raise DuplicateCollaborationError(developer_id, agency_id)

        now = self.network.now().isoformat()
        row = {
            "id": str(uuid4()),
            "developer_id": str(developer_id),
            "agency_id": str(agency_id),
            **documents.model_dump(),
            "developer_contract_url": None,
            "status": ContractStatus.PENDING.value,
            "notes": f"Requested for project: {project_name}" if project_name else None,
            "created_at": now,
            "updated_at": now,
            "license_renewed_at": None,
        }
        context = {"row": row}

        await self.network.sagas.run(
            ENTITY, UUID(row["id"]), "request", self._request_steps(context), context=context
        )

        logger.info(
            "Agency %s requested collaboration with developer %s", agency_id, developer_id
        )
        return CollaborationContract(**row)

    def _request_steps(self, context: Dict[str, Any]) -> List[SagaStep]:
        row = context["row"]
        contract_id = UUID(row["id"])
        developer_id = UUID(row["developer_id"])
        agency_id = UUID(row["agency_id"])

        async def insert_row() -> None:
            try:
                await self.client.table("developer_agency_contracts").insert(row).execute()
            except APIError as exc:
                if is_unique_violation(exc):
                    existing = await self.get_by_id(contract_id)
                    if existing is not None:
                        return
                    raise DuplicateCollaborationError(developer_id, agency_id) from exc
                raise

        async def notify_developer() -> None:
            agency_name = await self.network.memberships.display_name(agency_id)
            await self.network.notifications.send(
                recipient_id=developer_id,
                type=NotificationType.SYSTEM,
                title="New Collaboration Request",
                message=f"{agency_name} has requested to collaborate with you.",
                agency_id=agency_id,
                dedupe_key=f"contract:{contract_id}:request",
            )

        return [
            SagaStep("contract_row", insert_row),
            SagaStep("notification", notify_developer),
        ]

    async def review(
        self,
        developer_id: UUID,
        agency_id: UUID,
        decision: Union[ContractStatus, str],
        counter_signed_doc_url: Optional[str] = None,
    ) -> CollaborationContract:
        """
        Approve or reject a pending collaboration request.

        Approval requires the three agency documents plus a counter-signed
        contract, either passed here or uploaded earlier via update_terms().
        Rejection is terminal.

        Raises:
            ValidationError: If the decision is not active/rejected or documents are missing
            NotFoundError: If the pair has no contract
            StaleTransitionError: If the contract is no longer pending
            PartialFailureError: If the status was written but the notification failed
        """
        try:
            decision = ContractStatus(decision)
        except ValueError as exc:
            raise ValidationError(f"Unknown decision: {decision}") from exc

        if decision == ContractStatus.PENDING:
            raise ValidationError("A review decision must be 'active' or 'rejected'")

        contract = await self._require(developer_id, agency_id)

        progress = await self.network.sagas.get(ENTITY, contract.id, "review")
        resuming = (
            progress is not None
            and progress.started
            and not progress.completed
            and progress.context.get("decision") == decision.value
        )

        if not resuming and not contract.status.can_transition_to(decision):
            raise StaleTransitionError(
                ENTITY,
                contract.id,
                expected=ContractStatus.PENDING.value,
                actual=contract.status.value,
            )

        counter_signed = counter_signed_doc_url or contract.developer_contract_url
        if decision == ContractStatus.ACTIVE and not resuming:
            missing = contract.documents().missing()
            if not counter_signed:
                missing.append(DEVELOPER_DOCUMENT)
            if missing:
                raise ValidationError(
                    f"Cannot approve, missing documents: {', '.join(missing)}",
                    missing=missing,
                )

        context = {
            "decision": decision.value,
            "counter_signed_doc_url": counter_signed_doc_url,
        }
        await self.network.sagas.run(
            ENTITY, contract.id, "review",
            self._review_steps(contract, decision, counter_signed_doc_url),
            context=context,
        )

        logger.info(
            "Developer %s set collaboration with agency %s to %s",
            developer_id, agency_id, decision.value,
        )

        update: Dict[str, Any] = {"status": decision}
        if counter_signed_doc_url:
            update["developer_contract_url"] = counter_signed_doc_url
        return contract.model_copy(update=update)

    def _review_steps(
        self,
        contract: CollaborationContract,
        decision: ContractStatus,
        counter_signed_doc_url: Optional[str],
    ) -> List[SagaStep]:
        async def mark_status() -> None:
            changes: Dict[str, Any] = {
                "status": decision.value,
                "updated_at": self.network.now().isoformat(),
            }
            if counter_signed_doc_url:
                changes["developer_contract_url"] = counter_signed_doc_url

            result = await self.client.table("developer_agency_contracts").update(
                changes
            ).eq("id", str(contract.id)).eq(
                "status", ContractStatus.PENDING.value
            ).execute()

            if result.data:
                return

            current = await self.get_by_id(contract.id)
            if current is None:
                raise NotFoundError(f"Contract {contract.id} not found")
            raise StaleTransitionError(
                ENTITY,
                contract.id,
                expected=ContractStatus.PENDING.value,
                actual=current.status.value,
            )

        async def notify_agency() -> None:
            developer_name = await self.network.memberships.display_name(
                contract.developer_id, default="The developer"
            )
            if decision == ContractStatus.ACTIVE:
                title = "Collaboration Request Approved"
                message = f"{developer_name} approved your collaboration request."
            else:
                title = "Collaboration Request Rejected"
                message = f"{developer_name} rejected your collaboration request."

            await self.network.notifications.send(
                recipient_id=contract.agency_id,
                type=NotificationType.SYSTEM,
                title=title,
                message=message,
                agency_id=contract.agency_id,
                dedupe_key=f"contract:{contract.id}:review",
            )

        return [
            SagaStep("contract_status", mark_status),
            SagaStep("notification", notify_agency),
        ]

    def is_license_expired(
        self,
        contract: CollaborationContract,
        now: Optional["datetime"] = None,
    ) -> bool:
        """
        Whether the agency license of a contract needs re-validation.

        Pure: computed from the contract and the clock, never stored.
        """
        return contract.license_expired_at(
            now or self.network.now(), self.network.config.license_validity_months
        )

    async def renew(
        self,
        developer_id: UUID,
        agency_id: UUID,
        new_license_doc_url: str,
    ) -> CollaborationContract:
        """
        Replace the agency license of an active contract.

        Restarts the validity period from now through ``license_renewed_at``;
        ``created_at`` keeps the original request date.

        Raises:
            ValidationError: If no license URL is given
            NotFoundError: If the pair has no contract
            StaleTransitionError: If the contract is not active
            PartialFailureError: If the license was stored but the notification failed
        """
        if not new_license_doc_url or not new_license_doc_url.strip():
            raise ValidationError(
                "A new license document is required", missing=["agency_license_url"]
            )

        contract = await self._require(developer_id, agency_id)

        if contract.status != ContractStatus.ACTIVE:
            raise StaleTransitionError(
                ENTITY,
                contract.id,
                expected=ContractStatus.ACTIVE.value,
                actual=contract.status.value,
                message="Only active collaborations can renew their license",
            )

        now = self.network.now()
        changes = {
            "agency_license_url": new_license_doc_url.strip(),
            "license_renewed_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }

        result = await self.client.table("developer_agency_contracts").update(changes).eq(
            "id", str(contract.id)
        ).eq("status", ContractStatus.ACTIVE.value).execute()

        if not result.data:
            raise StaleTransitionError(
                ENTITY, contract.id, expected=ContractStatus.ACTIVE.value, actual="changed"
            )

        logger.info("Renewed license of contract %s", contract.id)

        try:
            agency_name = await self.network.memberships.display_name(agency_id)
            await self.network.notifications.send(
                recipient_id=developer_id,
                type=NotificationType.SYSTEM,
                title="Agency License Renewed",
                message=f"{agency_name} uploaded a renewed business license.",
                agency_id=agency_id,
                dedupe_key=f"contract:{contract.id}:renew:{changes['agency_license_url']}",
            )
        except Exception as exc:
            logger.error("Renewal notification for contract %s failed: %s", contract.id, exc)
            raise PartialFailureError(
                transition="renew",
                entity_id=contract.id,
                failed_step="notification",
                completed_steps=["contract_license"],
                cause=exc,
                context={"new_license_doc_url": changes["agency_license_url"]},
            ) from exc

        return CollaborationContract(**result.data[0])

    async def update_terms(
        self,
        developer_id: UUID,
        agency_id: UUID,
        notes: Optional[str] = None,
        counter_signed_doc_url: Optional[str] = None,
    ) -> CollaborationContract:
        """
        Developer edits the notes or uploads the counter-signed contract.

        Raises:
            ValidationError: If nothing to update
            NotFoundError: If the pair has no contract
            StaleTransitionError: If the contract was rejected
        """
        changes: Dict[str, Any] = {}
        if notes is not None:
            changes["notes"] = notes
        if counter_signed_doc_url:
            changes["developer_contract_url"] = counter_signed_doc_url

        if not changes:
            raise ValidationError("Nothing to update")

        contract = await self._require(developer_id, agency_id)

        if contract.status == ContractStatus.REJECTED:
            raise StaleTransitionError(
                ENTITY,
                contract.id,
                expected="pending or active",
                actual=contract.status.value,
            )

        changes["updated_at"] = self.network.now().isoformat()

        result = await self.client.table("developer_agency_contracts").update(changes).eq(
            "id", str(contract.id)
        ).execute()

        if not result.data:
            raise NotFoundError(f"Contract {contract.id} not found")

        return CollaborationContract(**result.data[0])

    def document_checklist(self, contract: CollaborationContract) -> DocumentChecklist:
        """Which documents of a contract are on file."""
        return DocumentChecklist.for_contract(contract)

    def collaboration_state(
        self,
        contract: Optional[CollaborationContract],
        now: Optional["datetime"] = None,
    ) -> CollaborationState:
        """
        State shown for a pair: an active contract with an expired
        license reads as ``renewal_required``.
        """
        if contract is None:
            return CollaborationState.NOT_REQUESTED
        if contract.status == ContractStatus.ACTIVE and self.is_license_expired(contract, now):
            return CollaborationState.RENEWAL_REQUIRED
        return CollaborationState(contract.status.value)

    async def list_by_developer(
        self,
        developer_id: UUID,
        status: Optional[ContractStatus] = None,
        search: Optional[str] = None,
        sort: Union[ContractSort, str] = ContractSort.DATE,
        descending: bool = True,
    ) -> List[CollaborationContract]:
        """
        List a developer's collaborations with the agency profile embedded.

        Args:
            developer_id: Developer profile UUID
            status: Only contracts in this status
            search: Case-insensitive match on agency name, email or registration number
            sort: "date", "name" or "status"
            descending: Reverse the sort order
        """
        sort = ContractSort(sort)

        query = self.client.table("developer_agency_contracts").select(
            CONTRACT_COLUMNS
        ).eq("developer_id", str(developer_id))

        if status:
            query = query.eq("status", ContractStatus(status).value)

        result = await query.order("created_at", desc=True).execute()
        contracts = [CollaborationContract(**row) for row in result.data or []]

        if search and search.strip():
            needle = search.strip().lower()
            contracts = [
                c for c in contracts
                if c.agency is not None and any(
                    needle in (value or "").lower()
                    for value in (
                        c.agency.full_name,
                        c.agency.agency_name,
                        c.agency.email,
                        c.agency.registration_number,
                    )
                )
            ]

        if sort == ContractSort.NAME:
            contracts.sort(
                key=lambda c: (c.agency.display_name if c.agency else "").lower(),
                reverse=descending,
            )
        elif sort == ContractSort.STATUS:
            contracts.sort(key=lambda c: STATUS_ORDER[c.status], reverse=descending)
        else:
            contracts.sort(key=lambda c: c.created_at, reverse=descending)

        return contracts

    async def list_by_agency(
        self,
        agency_id: UUID,
        status: Optional[ContractStatus] = None,
    ) -> List[CollaborationContract]:
        """List an agency's collaborations, newest first."""
        query = self.client.table("developer_agency_contracts").select("*").eq(
            "agency_id", str(agency_id)
        )

        if status:
            query = query.eq("status", ContractStatus(status).value)

        result = await query.order("created_at", desc=True).execute()
        return [CollaborationContract(**row) for row in result.data or []]

    async def resume(self, contract_id: UUID, transition: str = "request") -> CollaborationContract:
        """
        Finish an interrupted ``request`` or ``review`` of a contract.

        Raises:
            NotFoundError: If the transition never started or the row is gone
        """
        progress = await self.network.sagas.get(ENTITY, contract_id, transition)
        if progress is None:
            raise NotFoundError(f"No {transition} in progress for contract {contract_id}")

        if transition == "request":
            await self.network.sagas.run(
                ENTITY, contract_id, transition,
                self._request_steps(progress.context), context=progress.context,
            )
            contract = await self.get_by_id(contract_id)
            if contract is None:
                raise NotFoundError(f"Contract {contract_id} not found")
            return contract

        contract = await self.get_by_id(contract_id)
        if contract is None:
            raise NotFoundError(f"Contract {contract_id} not found")
        return await self.review(
            contract.developer_id,
            contract.agency_id,
            progress.context["decision"],
            counter_signed_doc_url=progress.context.get("counter_signed_doc_url"),
        )
