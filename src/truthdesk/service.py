"""
Async application facade.

Each method is an independent task for a host UI. Blocking filesystem and
process work runs in a worker thread (asyncio.to_thread) so the caller's
event loop stays responsive. Nothing is shared between calls except the
filesystem.

Note: errors are raised as the typed exceptions from truthdesk.errors; the
host decides how to present them.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from truthdesk.audit import AuditLog, new_audit_entry
from truthdesk.governance import GovernanceClient
from truthdesk.models import AuditEntry, GovernanceResult, RepoStatus
from truthdesk.runner import CommandRunner, TruthGitCLI
from truthdesk.store import AUDIT_FILE, TruthStore


class TruthDesk:
    def __init__(
        self,
        root: Optional[Path] = None,
        *,
        runner: Optional[CommandRunner] = None,
        governance: Optional[GovernanceClient] = None,
        strict_audit: bool = False,
    ):
        self.store = TruthStore(root)
        self.audit = AuditLog(self.store.root / AUDIT_FILE, strict=strict_audit)
        self.cli = TruthGitCLI(runner)
        self.governance = governance if governance is not None else GovernanceClient()

    # -- remote / external tool ---------------------------------------------

    async def governance_verify(self, claim: str, domain: str, risk_profile: str) -> GovernanceResult:
        return await self.governance.verify(claim, domain, risk_profile)

    async def verify_and_record(self, claim: str, domain: str, risk_profile: str) -> GovernanceResult:
        """Verify remotely, then prepend the verdict to the audit log."""
        result = await self.governance.verify(claim, domain, risk_profile)
        entry = new_audit_entry(claim, domain, risk_profile, result)
        await asyncio.to_thread(self.audit.append, entry)
        return result

    async def run_truthgit_command(self, args: Sequence[str]) -> str:
        return await asyncio.to_thread(self.cli.run, list(args))

    async def verify_claim_local(self, claim: str, domain: str) -> str:
        return await asyncio.to_thread(self.cli.verify_local, claim, domain)

    # -- store --------------------------------------------------------------

    async def list_claims(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.store.list_claims)

    async def get_claim(self, content_hash: str) -> Any:
        return await asyncio.to_thread(self.store.get_claim, content_hash)

    async def list_verifications(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.store.list_verifications)

    async def get_truth_status(self) -> RepoStatus:
        return await asyncio.to_thread(self.store.status)

    # -- audit --------------------------------------------------------------

    async def get_audit_trail(self) -> List[AuditEntry]:
        return await asyncio.to_thread(self.audit.read)

    async def add_audit_entry(self, entry: Union[AuditEntry, Dict[str, Any]]) -> None:
        await asyncio.to_thread(self.audit.append, entry)


__all__ = ["TruthDesk"]
