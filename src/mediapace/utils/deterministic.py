"""Deterministic serialization and hashing helpers."""

import hashlib
import json
from typing import Any, Iterable


def canonical_json(value: Any) -> str:
    """Serialize data into stable JSON so equal inputs hash equally."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def stable_hash_hex(*parts: str) -> str:
    """Create a stable SHA-256 digest over multiple string parts."""
    h = hashlib.sha256()
    for part in parts:
        h.update(part.encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()


def normalize_ids(ids: Iterable[Any] | None) -> list[str]:
    """Trim, lowercase, dedupe and sort an id list. Blank entries are dropped."""
    if not ids:
        return []
    seen: set[str] = set()
    for raw in ids:
        if raw is None:
            continue
        value = str(raw).strip().lower()
        if value:
            seen.add(value)
    return sorted(seen)
