"""
Read access to the truth store.

The store is produced by the external ``truthgit`` tool. Layout::

    <root>/
      HEAD                        raw head reference
      proof.key, proof.pub        optional signing key pair
      audit.json                  audit log (owned by truthdesk, see audit.py)
      objects/cl/<ab>/<cdef...>   zlib-compressed claim objects
      objects/vf/<ab>/<cdef...>   zlib-compressed verification objects

Default root: ~/Almacen_IA/LumenSyntax-Main/.truth (override with
TRUTHDESK_HOME).

This module never writes into the root.
"""
from __future__ import annotations

import logging
import os
import threading
import warnings
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from truthdesk.codec import decode_object
from truthdesk.errors import (
    IntegrityWarning,
    InvalidIdentifierError,
    ObjectDecodeError,
    ObjectNotFoundError,
    StoreUnavailableError,
)
from truthdesk.models import RepoStatus

logger = logging.getLogger(__name__)

# Length of the fan-out directory name taken from the front of a hash.
FANOUT_PREFIX_LEN = 2

HOME_ENV = "TRUTHDESK_HOME"
_DEFAULT_HOME = "Almacen_IA/LumenSyntax-Main/.truth"

OBJECTS_DIR = "objects"
HEAD_FILE = "HEAD"
PRIVATE_KEY_FILE = "proof.key"
PUBLIC_KEY_FILE = "proof.pub"
AUDIT_FILE = "audit.json"

HASH_FIELD = "$hash"


def truth_home() -> Path:
    """Return the truth store root.

    TRUTHDESK_HOME wins when set. Otherwise the root lives under the user's
    home directory; if that cannot be resolved, StoreUnavailableError.
    """
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise StoreUnavailableError("Could not find home directory") from e
    return home / _DEFAULT_HOME


class Category(str, Enum):
    """Object categories and their on-disk codes."""

    CLAIMS = "claims"
    VERIFICATIONS = "verifications"

    @property
    def code(self) -> str:
        return _CATEGORY_CODES[self]

    @property
    def sort_field(self) -> Tuple[str, ...]:
        """Key path of the timestamp used for newest-first ordering."""
        return _CATEGORY_SORT_FIELDS[self]

    @property
    def label(self) -> str:
        return "Claim" if self is Category.CLAIMS else "Verification"

    @classmethod
    def parse(cls, value: Union["Category", str]) -> "Category":
        if isinstance(value, cls):
            return value
        for category in cls:
            if value in (category.value, category.code):
                return category
        raise ValueError(f"Unknown category: {value!r}")


_CATEGORY_CODES = {
    Category.CLAIMS: "cl",
    Category.VERIFICATIONS: "vf",
}

_CATEGORY_SORT_FIELDS = {
    Category.CLAIMS: ("metadata", "created_at"),
    Category.VERIFICATIONS: ("timestamp",),
}


def split_hash(content_hash: str, prefix_len: int = FANOUT_PREFIX_LEN) -> Tuple[str, str]:
    """Split a hash into (fan-out directory, file name).

    Pure string check, no filesystem access.
    """
    if len(content_hash) <= prefix_len:
        raise InvalidIdentifierError(content_hash)
    if any(sep in content_hash for sep in ("/", "\\", "\x00")):
        raise InvalidIdentifierError(content_hash, "Hash contains a path separator")
    prefix, suffix = content_hash[:prefix_len], content_hash[prefix_len:]
    if prefix in (".", "..") or suffix in (".", ".."):
        raise InvalidIdentifierError(content_hash, "Hash is a relative path component")
    return prefix, suffix


def resolve_object_path(
    root: Path,
    category: Union[Category, str],
    content_hash: str,
    prefix_len: int = FANOUT_PREFIX_LEN,
) -> Path:
    """Map a content hash to ``root/objects/<code>/<prefix>/<rest>``."""
    prefix, suffix = split_hash(content_hash, prefix_len)
    return Path(root) / OBJECTS_DIR / Category.parse(category).code / prefix / suffix


def _field(obj: Any, key_path: Tuple[str, ...]) -> str:
    """Dig a string out of nested dicts. Anything else counts as ''."""
    value = obj
    for key in key_path:
        if not isinstance(value, dict):
            return ""
        value = value.get(key)
    return value if isinstance(value, str) else ""


def check_object_hash(obj: Any, path: Path) -> bool:
    """Compare an object's stored ``$hash`` against the hash its path implies.

    A mismatch emits IntegrityWarning and returns False. Objects without a
    ``$hash`` field pass.
    """
    if not isinstance(obj, dict) or HASH_FIELD not in obj:
        return True
    implied = path.parent.name + path.name
    stored = obj.get(HASH_FIELD)
    if stored == implied:
        return True
    warnings.warn(
        f"truthdesk: stored hash {stored!r} does not match path {path} (implies {implied!r})",
        IntegrityWarning,
        stacklevel=3,
    )
    return False


class TruthStore:
    """
    Read-only view over a truth store root.

    Holds no mutable state between calls; every method goes back to disk.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        *,
        prefix_len: int = FANOUT_PREFIX_LEN,
    ):
        if root is None:
            root = truth_home()
        self.root = Path(root)
        self.prefix_len = prefix_len

    def __repr__(self) -> str:
        return f"TruthStore(root={str(self.root)!r})"

    @property
    def objects_dir(self) -> Path:
        return self.root / OBJECTS_DIR

    @property
    def audit_path(self) -> Path:
        return self.root / AUDIT_FILE

    def category_dir(self, category: Union[Category, str]) -> Path:
        return self.objects_dir / Category.parse(category).code

    def object_path(self, category: Union[Category, str], content_hash: str) -> Path:
        return resolve_object_path(self.root, category, content_hash, self.prefix_len)

    # -- single object ------------------------------------------------------

    def get_object(self, category: Union[Category, str], content_hash: str) -> Any:
        """Resolve and decode one object.

        Raises InvalidIdentifierError, ObjectNotFoundError or an
        ObjectDecodeError subclass.
        """
        category = Category.parse(category)
        path = self.object_path(category, content_hash)
        if not path.exists():
            raise ObjectNotFoundError(content_hash, path, kind=category.label)
        obj = decode_object(path)
        check_object_hash(obj, path)
        return obj

    def get_claim(self, content_hash: str) -> Any:
        return self.get_object(Category.CLAIMS, content_hash)

    def get_verification(self, content_hash: str) -> Any:
        return self.get_object(Category.VERIFICATIONS, content_hash)

    # -- enumeration --------------------------------------------------------

    def iter_object_paths(self, category: Union[Category, str]) -> Iterator[Path]:
        """Yield every regular file exactly two levels below the category dir.

        Symlinks are skipped at both levels. Missing category dir yields
        nothing. Unreadable fan-out dirs are logged and skipped.
        """
        base = self.category_dir(category)
        if not base.is_dir():
            return
        for fanout in sorted(base.iterdir()):
            if fanout.is_symlink() or not fanout.is_dir():
                continue
            try:
                entries = sorted(fanout.iterdir())
            except OSError as e:
                logger.warning("Failed to read directory %s: %s", fanout, e)
                continue
            for entry in entries:
                if entry.is_file() and not entry.is_symlink():
                    yield entry

    def list_objects(self, category: Union[Category, str]) -> List[Dict[str, Any]]:
        """Decode every object of a category, newest first.

        Objects that fail to decode are logged and left out; they never
        abort the listing.
        """
        category = Category.parse(category)
        objects: List[Any] = []
        for path in self.iter_object_paths(category):
            try:
                obj = decode_object(path)
            except ObjectDecodeError as e:
                logger.warning("Failed to read %s %s: %s", category.label.lower(), path, e)
                continue
            check_object_hash(obj, path)
            objects.append(obj)

        sort_field = category.sort_field
        objects.sort(key=lambda o: _field(o, sort_field), reverse=True)
        return objects

    def list_claims(self) -> List[Dict[str, Any]]:
        return self.list_objects(Category.CLAIMS)

    def list_verifications(self) -> List[Dict[str, Any]]:
        return self.list_objects(Category.VERIFICATIONS)

    def count_objects(self, category: Union[Category, str]) -> int:
        """Count stored objects without decoding them."""
        return sum(1 for _ in self.iter_object_paths(category))

    # -- status -------------------------------------------------------------

    def head_ref(self) -> Optional[str]:
        """Raw HEAD contents, or None if absent/unreadable."""
        try:
            return (self.root / HEAD_FILE).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def has_keys(self) -> bool:
        # One file on its own is not usable key material.
        return (self.root / PRIVATE_KEY_FILE).exists() and (self.root / PUBLIC_KEY_FILE).exists()

    def status(self) -> RepoStatus:
        if not self.root.exists():
            return RepoStatus(exists=False, path=str(self.root))
        return RepoStatus(
            exists=True,
            path=str(self.root),
            claims_count=self.count_objects(Category.CLAIMS),
            verifications_count=self.count_objects(Category.VERIFICATIONS),
            head_ref=self.head_ref(),
            has_keys=self.has_keys(),
        )


# ---------------------------------------------------------------------------
# Module-level default (protected by _module_lock)
# ---------------------------------------------------------------------------

_module_lock = threading.Lock()
_default_store: Optional[TruthStore] = None


def get_default_store() -> TruthStore:
    """Get or create the TruthStore rooted at truth_home()."""
    global _default_store
    with _module_lock:
        if _default_store is None:
            _default_store = TruthStore()
        return _default_store


__all__ = [
    "FANOUT_PREFIX_LEN",
    "HOME_ENV",
    "Category",
    "TruthStore",
    "check_object_hash",
    "get_default_store",
    "resolve_object_path",
    "split_hash",
    "truth_home",
]
