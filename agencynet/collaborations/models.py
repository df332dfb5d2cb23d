"""
Developer-agency collaboration models.

Pydantic models for document-gated collaboration contracts.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..utils.timeutils import calendar_months_between, ensure_utc

AGENCY_DOCUMENTS = (
    "agency_registration_url",
    "agency_license_url",
    "agency_signed_contract_url",
)
DEVELOPER_DOCUMENT = "developer_contract_url"


class ContractStatus(str, Enum):
    """Closed set of collaboration contract states."""

    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"

    def can_transition_to(self, target: "ContractStatus") -> bool:
        return target in CONTRACT_TRANSITIONS[self]


CONTRACT_TRANSITIONS: Dict[ContractStatus, FrozenSet[ContractStatus]] = {
    ContractStatus.PENDING: frozenset({ContractStatus.ACTIVE, ContractStatus.REJECTED}),
    ContractStatus.ACTIVE: frozenset(),
    ContractStatus.REJECTED: frozenset(),
}

# active first, as the developer dashboard orders them
STATUS_ORDER = {
    ContractStatus.ACTIVE: 0,
    ContractStatus.PENDING: 1,
    ContractStatus.REJECTED: 2,
}


class CollaborationState(str, Enum):
    """What a viewer sees for a (developer, agency) pair."""

    NOT_REQUESTED = "not_requested"
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    RENEWAL_REQUIRED = "renewal_required"


class ContractSort(str, Enum):
    DATE = "date"
    NAME = "name"
    STATUS = "status"


class ContractDocuments(BaseModel):
    """The three agency-side documents a collaboration request carries."""

    agency_registration_url: Optional[str] = None
    agency_license_url: Optional[str] = None
    agency_signed_contract_url: Optional[str] = None

    @field_validator(*AGENCY_DOCUMENTS)
    @classmethod
    def _blank_as_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def missing(self) -> List[str]:
        return [name for name in AGENCY_DOCUMENTS if not getattr(self, name)]


class AgencySummary(BaseModel):
    """Agency profile fields embedded in a developer's contract listing."""

    id: UUID
    full_name: Optional[str] = None
    agency_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    registration_number: Optional[str] = None
    whatsapp: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.agency_name or self.full_name or ""


class CollaborationContract(BaseModel):
    """
    Collaboration contract between a developer and an agency.

    One row per (developer_id, agency_id). The agency supplies three
    documents when requesting; the developer counter-signs on approval.
    """

    id: UUID
    developer_id: UUID
    agency_id: UUID

    agency_registration_url: Optional[str] = None
    agency_license_url: Optional[str] = None
    agency_signed_contract_url: Optional[str] = None
    developer_contract_url: Optional[str] = None

    status: ContractStatus = ContractStatus.PENDING
    notes: Optional[str] = None

    agency: Optional[AgencySummary] = None

    created_at: datetime
    updated_at: Optional[datetime] = None
    license_renewed_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "developer_id": "456e7890-e89b-12d3-a456-426614174000",
                "agency_id": "789e0123-e89b-12d3-a456-426614174000",
                "agency_registration_url": "https://files.example.com/registration.pdf",
                "agency_license_url": "https://files.example.com/license.pdf",
                "agency_signed_contract_url": "https://files.example.com/contract.pdf",
                "developer_contract_url": None,
                "status": "pending",
                "notes": "Requested for project: Marina Heights",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
                "license_renewed_at": None,
            }
        },
    }

    @field_validator("created_at", "updated_at", "license_renewed_at")
    @classmethod
    def _as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def license_anchor(self) -> datetime:
        """Date the license validity period counts from."""
        return self.license_renewed_at or self.created_at

    def documents(self) -> ContractDocuments:
        return ContractDocuments(
            agency_registration_url=self.agency_registration_url,
            agency_license_url=self.agency_license_url,
            agency_signed_contract_url=self.agency_signed_contract_url,
        )

    def license_expired_at(self, now: datetime, validity_months: int = 11) -> bool:
        """
        Whether the agency license needs re-validation at ``now``.

        Counts whole calendar months from the anchor, ignoring the day of
        month. A contract without a license document is never flagged.
        """
        if not self.agency_license_url:
            return False
        return calendar_months_between(self.license_anchor, ensure_utc(now)) >= validity_months


class DocumentChecklist(BaseModel):
    """Which documents of a contract are on file."""

    agency_registration: bool
    agency_license: bool
    agency_signed_contract: bool
    developer_contract: bool

    missing: List[str] = Field(default_factory=list)

    @property
    def ready_for_approval(self) -> bool:
        return not self.missing

    @classmethod
    def for_contract(cls, contract: CollaborationContract) -> "DocumentChecklist":
        missing = contract.documents().missing()
        if not contract.developer_contract_url:
            missing.append(DEVELOPER_DOCUMENT)
        return cls(
            agency_registration=bool(contract.agency_registration_url),
            agency_license=bool(contract.agency_license_url),
            agency_signed_contract=bool(contract.agency_signed_contract_url),
            developer_contract=bool(contract.developer_contract_url),
            missing=missing,
        )
