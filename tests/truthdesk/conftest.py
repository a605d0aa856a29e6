"""Shared fixtures: build throwaway truth stores on disk."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest

from truthdesk.codec import encode_object

import truthdesk.store as store_mod


def _make_claim(content_hash: str, created_at: Optional[str] = "2024-01-01T00:00:00Z", **overrides: Any) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"language": "en", "tags": ["test"], "created_by": "tester"}
    if created_at is not None:
        metadata["created_at"] = created_at
    claim: Dict[str, Any] = {
        "content": f"claim {content_hash}",
        "confidence": 0.9,
        "category": "fact",
        "domain": "physics",
        "state": "verified",
        "$hash": content_hash,
        "$type": "claim",
        "metadata": metadata,
    }
    claim.update(overrides)
    return claim


@pytest.fixture
def make_claim() -> Callable[..., Dict[str, Any]]:
    """Factory for claim-shaped dicts."""
    return _make_claim


@pytest.fixture
def truth_root(tmp_path: Path) -> Path:
    root = tmp_path / ".truth"
    root.mkdir()
    return root


@pytest.fixture
def put_raw(truth_root: Path) -> Callable[[str, str, bytes], Path]:
    """Write raw bytes at objects/<code>/<hash[:2]>/<hash[2:]>."""

    def _put(code: str, content_hash: str, raw: bytes) -> Path:
        path = truth_root / "objects" / code / content_hash[:2] / content_hash[2:]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw)
        return path

    return _put


@pytest.fixture
def put_object(put_raw: Callable[[str, str, bytes], Path]) -> Callable[[str, str, Any], Path]:
    """Write a compressed JSON object into the store."""

    def _put(code: str, content_hash: str, value: Any) -> Path:
        return put_raw(code, content_hash, encode_object(value))

    return _put


@pytest.fixture
def truth_home_tmp(truth_root: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point TRUTHDESK_HOME at the temp store and reset module globals."""
    monkeypatch.setenv(store_mod.HOME_ENV, str(truth_root))
    monkeypatch.setattr(store_mod, "_default_store", None)
    return truth_root
