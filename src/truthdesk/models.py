"""
Typed records used by truthdesk.

Data this package owns (the audit log) is validated strictly. Data produced
by the external tool (claims, verifications) is returned as plain dicts by
the store; ``Claim`` is offered for callers that want a typed view and it
keeps unknown fields.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClaimMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    language: Optional[str] = None
    tags: Optional[List[str]] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None


class Claim(BaseModel):
    """A claim object as written by truthgit."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    content: str
    confidence: float = Field(ge=0.0, le=1.0)
    category: str
    domain: str
    state: str
    hash: str = Field(alias="$hash")
    claim_type: str = Field(alias="$type")
    metadata: ClaimMetadata = Field(default_factory=ClaimMetadata)


class AuditEntry(BaseModel):
    """One governance/verification action and its outcome."""

    id: str
    timestamp: str
    action: str
    claim: str
    domain: str
    risk_profile: str
    result_status: str
    result_action: str
    confidence: float


class RepoStatus(BaseModel):
    """Point-in-time snapshot of the object root. Never persisted."""

    exists: bool
    path: str
    claims_count: int = 0
    verifications_count: int = 0
    head_ref: Optional[str] = None
    has_keys: bool = False


class GovernanceResult(BaseModel):
    status: str
    action: str
    confidence: float
    reason: str
    audit_ref: str
    ontological_type: Optional[str] = None


class GovernanceResponse(BaseModel):
    """Envelope returned by the governance service."""

    success: bool
    data: Optional[GovernanceResult] = None
    error: Optional[str] = None


__all__ = [
    "ClaimMetadata",
    "Claim",
    "AuditEntry",
    "RepoStatus",
    "GovernanceResult",
    "GovernanceResponse",
]
