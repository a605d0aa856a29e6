"""
truthdesk: desktop-side access to a truthgit store.

- Read content-addressed claim and verification objects (zlib + JSON)
- Report store status (object counts, HEAD, signing-key presence)
- Keep a newest-first audit trail of verification outcomes
- Proxy the remote governance service and the local truthgit CLI
"""

__version__ = "0.3.0"

from .audit import AuditLog
from .errors import TruthDeskError
from .models import AuditEntry, RepoStatus
from .store import Category, TruthStore, get_default_store

__all__ = [
    "__version__",
    "AuditEntry",
    "AuditLog",
    "Category",
    "RepoStatus",
    "TruthDeskError",
    "TruthStore",
    "get_default_store",
]
