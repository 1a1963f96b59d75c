"""
Opaque cursor encoding.

A cursor is the base64 text of a UTF-8 JSON array::

    ["public.account", 3]
    ["public.membership", 7, "c1d4..."]

Element 0 is the entity identity (``schema.table``), the remaining elements are
primary key values in primary key column order. The same token doubles as the
global object id exposed through ``nodeId``.

The JSON text is rendered the way PostgreSQL renders ``jsonb`` (``", "``
separators, no ASCII escaping), so a cursor encoded here is byte-identical to
the one the compiled query produces for the same row.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Sequence
from typing import Any

from pg_graphql.errors import CursorDecodeError


def encode_cursor(identity: str, primary_key: Sequence[Any]) -> str:
    """Encode an entity identity and its primary key values as an opaque cursor."""
    contents = [identity, *primary_key]
    text = json.dumps(contents, ensure_ascii=False, separators=(", ", ": "))
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_cursor(token: str) -> list[Any]:
    """
    Decode a cursor back into ``[identity, pk1, pk2, ...]``.

    Raises:
        CursorDecodeError: token is not base64, not UTF-8 JSON, or not a
            non-empty array starting with a string identity
    """
    try:
        raw = base64.b64decode(token.encode("ascii"), validate=True)
        contents = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise CursorDecodeError(f"Invalid cursor '{token}': {e}") from e

    if not isinstance(contents, list) or not contents or not isinstance(contents[0], str):
        raise CursorDecodeError(f"Invalid cursor '{token}': expected [identity, key, ...]")
    return contents


def split_cursor(token: str) -> tuple[str, tuple[Any, ...]]:
    """Decode a cursor into ``(identity, primary_key_values)``."""
    contents = decode_cursor(token)
    return contents[0], tuple(contents[1:])
