"""
Client for the remote TruthGit governance service.

One POST per verification, no retries. The response body is an envelope
``{"success": bool, "data": {...} | null, "error": str | null}``; the HTTP
status code is not interpreted, only the envelope.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import httpx
from pydantic import ValidationError

from truthdesk.errors import GovernanceError
from truthdesk.models import GovernanceResponse, GovernanceResult

logger = logging.getLogger(__name__)

API_URL_ENV = "TRUTHGIT_API_URL"
DEFAULT_API_URL = "https://truthgit-api-342668283383.us-central1.run.app"
VERIFY_PATH = "/api/governance/verify"


def api_url() -> str:
    return os.environ.get(API_URL_ENV) or DEFAULT_API_URL


class GovernanceClient:
    """Async governance client.

    ``timeout=None`` disables httpx timeouts entirely. ``transport`` is
    passed through to httpx (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or api_url()).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def verify_url(self) -> str:
        return f"{self.base_url}{VERIFY_PATH}"

    async def verify(self, claim: str, domain: str, risk_profile: str) -> GovernanceResult:
        payload = {"claim": claim, "domain": domain, "risk_profile": risk_profile}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.verify_url, json=payload)
        except httpx.HTTPError as e:
            raise GovernanceError(f"Failed to connect to TruthGit API: {e}") from e

        try:
            envelope = GovernanceResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise GovernanceError(f"Failed to parse response: {e}") from e

        if envelope.data is not None:
            logger.debug("Governance verdict %s for domain %s", envelope.data.action, domain)
            return envelope.data
        raise GovernanceError(envelope.error or "Unknown error")


__all__ = ["GovernanceClient", "api_url", "DEFAULT_API_URL"]
