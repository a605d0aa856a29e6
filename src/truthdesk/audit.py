"""
Audit log for governance/verification actions.

Stored as one pretty-printed JSON array at <root>/audit.json, newest entry
at index 0. Appending means inserting at the front and rewriting the whole
file; insertion order is the log order and is never re-sorted.

Writers are serialized with a threading.RLock (in-process) and an advisory
fcntl.flock on a sidecar ``audit.json.lock`` (cross-process, POSIX only,
graceful no-op on Windows). The new file is written next to the old one and
swapped in with os.replace, so readers never see a half-written log.
"""
from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from pydantic import TypeAdapter, ValidationError

from truthdesk.errors import AuditLogCorruptError, AuditLogError
from truthdesk.models import AuditEntry, GovernanceResult

# Advisory file locking -- POSIX only, graceful no-op on Windows
try:
    import fcntl
    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

logger = logging.getLogger(__name__)

CORRUPT_SUFFIX = ".corrupt"
LOCK_SUFFIX = ".lock"

_ENTRY_LIST = TypeAdapter(List[AuditEntry])

_locks_guard = threading.Lock()
_path_locks: Dict[str, threading.RLock] = {}


def _lock_for(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
        return lock


def generate_entry_id() -> str:
    return f"audit_{uuid.uuid4().hex[:12]}"


def new_audit_entry(
    claim: str,
    domain: str,
    risk_profile: str,
    result: GovernanceResult,
    *,
    action: str = "governance_verify",
    timestamp: Optional[str] = None,
) -> AuditEntry:
    """Build an audit entry recording a governance verdict."""
    return AuditEntry(
        id=generate_entry_id(),
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        action=action,
        claim=claim,
        domain=domain,
        risk_profile=risk_profile,
        result_status=result.status,
        result_action=result.action,
        confidence=result.confidence,
    )


def filter_entries(
    entries: Sequence[AuditEntry],
    query: Optional[str] = None,
    action: Optional[str] = None,
) -> List[AuditEntry]:
    """Filter by result action (exact) and a case-insensitive search over
    claim, domain and id. Order is preserved."""
    needle = query.lower() if query else None
    selected: List[AuditEntry] = []
    for entry in entries:
        if action and action != "all" and entry.result_action != action:
            continue
        if needle and not (
            needle in entry.claim.lower()
            or needle in entry.domain.lower()
            or needle in entry.id.lower()
        ):
            continue
        selected.append(entry)
    return selected


class AuditLog:
    """
    Newest-first audit log over a single JSON file.

    ``strict=False`` (default): an unparseable file is preserved as
    ``audit.json.corrupt-<UTC stamp>`` on append and the log restarts from empty.
    ``strict=True``: append refuses to overwrite it and raises.
    """

    def __init__(self, path: Optional[Path] = None, *, strict: bool = False):
        if path is None:
            from truthdesk.store import AUDIT_FILE, truth_home
            path = truth_home() / AUDIT_FILE
        self.path = Path(path)
        self.strict = strict

    def __repr__(self) -> str:
        return f"AuditLog(path={str(self.path)!r})"

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + LOCK_SUFFIX)

    def corrupt_path(self) -> Path:
        """Fresh name for a preserved unparseable log; never an existing file."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        candidate = self.path.with_name(f"{self.path.name}{CORRUPT_SUFFIX}-{stamp}")
        while candidate.exists():
            candidate = self.path.with_name(f"{self.path.name}{CORRUPT_SUFFIX}-{stamp}-{uuid.uuid4().hex[:6]}")
        return candidate

    # -- reading ------------------------------------------------------------

    def _read_text(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise AuditLogError(f"Failed to read audit file: {e}", self.path) from e

    def _parse(self, content: str) -> List[AuditEntry]:
        try:
            return _ENTRY_LIST.validate_json(content)
        except ValidationError as e:
            raise AuditLogCorruptError(f"Failed to parse audit file: {e}", self.path) from e

    def read(self) -> List[AuditEntry]:
        """Return all entries, newest first. Missing file means empty log."""
        content = self._read_text()
        if content is None:
            return []
        return self._parse(content)

    # -- writing ------------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with _lock_for(self.path):
            try:
                fd = os.open(str(self.lock_path), os.O_WRONLY | os.O_CREAT, 0o644)
            except OSError as e:
                raise AuditLogError(f"Failed to lock audit file: {e}", self.path) from e
            try:
                if _HAS_FCNTL:
                    fcntl.flock(fd, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    if _HAS_FCNTL:
                        fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)

    def _replace(self, data: bytes) -> None:
        """Write ``data`` to a temp file beside the log, then swap it in.

        The temp file takes the current log's permission bits (0644 for a
        new log) so the swap does not change them.
        """
        tmp_name = None
        try:
            try:
                mode = stat.S_IMODE(os.stat(self.path).st_mode)
            except FileNotFoundError:
                mode = 0o644
            with tempfile.NamedTemporaryFile(
                "wb",
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, self.path)
        except (OSError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise AuditLogError(f"Failed to write audit file: {e}", self.path) from e

    def _load_for_append(self) -> List[AuditEntry]:
        content = self._read_text()
        if content is None:
            return []
        try:
            return self._parse(content)
        except AuditLogCorruptError:
            if self.strict:
                raise
            backup = self.corrupt_path()
            logger.warning(
                "Audit file %s is not a valid entry list; preserving it as %s and starting a new log",
                self.path,
                backup,
            )
            try:
                with open(backup, "x", encoding="utf-8") as f:
                    f.write(content)
            except OSError as e:
                raise AuditLogError(f"Failed to preserve corrupt audit file: {e}", self.path) from e
            return []

    def append(self, entry: Union[AuditEntry, Dict[str, Any]]) -> None:
        """Insert ``entry`` at the front of the log and rewrite the file."""
        if not isinstance(entry, AuditEntry):
            try:
                entry = AuditEntry.model_validate(entry)
            except ValidationError as e:
                raise AuditLogError(f"Invalid audit entry: {e}", self.path) from e

        with self._locked():
            entries = self._load_for_append()
            entries.insert(0, entry)
            try:
                data = json.dumps(
                    [e.model_dump(mode="json") for e in entries],
                    indent=2,
                    ensure_ascii=False,
                ).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise AuditLogError(f"Failed to serialize audit: {e}", self.path) from e
            self._replace(data)
        logger.debug("Recorded audit entry %s in %s", entry.id, self.path)


def get_default_audit_log() -> AuditLog:
    """Return the audit log at the default store root."""
    return AuditLog()


__all__ = [
    "AuditLog",
    "filter_entries",
    "generate_entry_id",
    "get_default_audit_log",
    "new_audit_entry",
]
