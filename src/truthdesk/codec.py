"""
Object codec for the truth store.

A stored object is a zlib-wrapped deflate stream whose payload is UTF-8
JSON. Decoding is schema-free: callers pick the fields they need.
"""
from __future__ import annotations

import json
import zlib
from pathlib import Path
from typing import Any, Union

from truthdesk.errors import (
    ObjectDecompressError,
    ObjectJSONError,
    ObjectOpenError,
    ObjectTextError,
)


def decode_bytes(raw: bytes, path: Union[str, Path] = "<memory>") -> Any:
    """Decode raw object bytes. ``path`` is only used in error messages."""
    try:
        payload = zlib.decompress(raw)
    except zlib.error as e:
        raise ObjectDecompressError(Path(path), e) from e

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ObjectTextError(Path(path), e) from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ObjectJSONError(Path(path), e) from e


def decode_object(path: Union[str, Path]) -> Any:
    """Read and decode one stored object.

    Raises one of ObjectOpenError, ObjectDecompressError, ObjectTextError
    or ObjectJSONError (all ObjectDecodeError subclasses).
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ObjectOpenError(path, e) from e
    return decode_bytes(raw, path)


def encode_object(value: Any) -> bytes:
    """Encode a JSON-compatible value into stored-object bytes."""
    return zlib.compress(json.dumps(value, sort_keys=True).encode("utf-8"))


__all__ = ["decode_bytes", "decode_object", "encode_object"]
