"""
Error taxonomy for truthdesk.

Every failure that crosses a public boundary is one of these types, so the
caller can tell which stage failed (resolve, open, decompress, decode,
parse, audit write, external tool, remote service) without string matching.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class TruthDeskError(Exception):
    """Base class for all truthdesk errors."""


class StoreUnavailableError(TruthDeskError):
    """The object root cannot be located (e.g. no home directory)."""


# ---------------------------------------------------------------------------
# Addressing
# ---------------------------------------------------------------------------

class InvalidIdentifierError(TruthDeskError, ValueError):
    """A content hash is malformed (too short, or contains path parts)."""

    def __init__(self, content_hash: str, reason: str = "Invalid hash"):
        self.content_hash = content_hash
        super().__init__(f"{reason}: {content_hash!r}")


class ObjectNotFoundError(TruthDeskError, LookupError):
    """A well-formed hash resolves to a path that does not exist."""

    def __init__(self, content_hash: str, path: Path, kind: str = "Object"):
        self.content_hash = content_hash
        self.path = path
        super().__init__(f"{kind} not found: {content_hash}")


# ---------------------------------------------------------------------------
# Object decoding
# ---------------------------------------------------------------------------

class ObjectDecodeError(TruthDeskError):
    """A stored object could not be turned into a structured value."""

    stage = "decode"

    def __init__(self, path: Path, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{self.describe()} {self.path}{detail}")

    def describe(self) -> str:
        return f"Failed to {self.stage}"


class ObjectOpenError(ObjectDecodeError):
    stage = "open file"


class ObjectDecompressError(ObjectDecodeError):
    stage = "decompress"


class ObjectTextError(ObjectDecodeError):
    stage = "decode UTF-8 text of"


class ObjectJSONError(ObjectDecodeError):
    stage = "parse JSON of"


class IntegrityWarning(UserWarning):
    """A stored claim's self-declared hash disagrees with its storage path."""


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

class AuditLogError(TruthDeskError):
    """The audit file could not be read, serialized or written."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)


class AuditLogCorruptError(AuditLogError):
    """The audit file exists but does not hold a valid entry sequence."""


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------

class CommandError(TruthDeskError):
    """The external CLI could not be started or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class CommandOutputError(CommandError):
    """The external CLI succeeded but its stdout is not UTF-8."""


class GovernanceError(TruthDeskError):
    """The remote governance service call failed or reported an error."""


__all__ = [
    "TruthDeskError",
    "StoreUnavailableError",
    "InvalidIdentifierError",
    "ObjectNotFoundError",
    "ObjectDecodeError",
    "ObjectOpenError",
    "ObjectDecompressError",
    "ObjectTextError",
    "ObjectJSONError",
    "IntegrityWarning",
    "AuditLogError",
    "AuditLogCorruptError",
    "CommandError",
    "CommandOutputError",
    "GovernanceError",
]
