"""Deterministic line item identifiers and channel labels.

Ids follow ``<MBA_NUMBER><MEDIA_TYPE_CODE><LINE_ITEM_NUMBER>``.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

MEDIA_TYPE_ID_CODES: dict[str, str] = {
    "television": "TV",
    "newspaper": "NP",
    "socialMedia": "SM",
    "radio": "RA",
    "magazines": "MG",
    "cinema": "CN",
    "digiDisplay": "ML",
    "digiAudio": "DA",
    "digiVideo": "DV",
    "bvod": "BV",
    "integration": "ML",
    "search": "SE",
    "progDisplay": "PD",
    "progVideo": "ML",
    "progBvod": "ML",
    "progAudio": "ML",
    "progOoh": "ML",
    "ooh": "ML",
}

CHANNEL_LABELS: dict[str, str] = {
    "tv": "TV",
    "television": "TV",
    "bvod": "BVOD",
    "broadcastvideoondemand": "BVOD",
    "youtube": "YouTube",
    "video": "YouTube",
    "digitalvideo": "YouTube",
    "programmatic": "Programmatic",
    "progdisplay": "Programmatic",
    "programmaticdisplay": "Programmatic",
    "progvideo": "Programmatic",
    "programmaticvideo": "Programmatic",
    "display": "Programmatic",
    "social": "Social",
    "socialmedia": "Social",
    "paidsocial": "Social",
    "facebook": "Social",
    "instagram": "Social",
    "meta": "Social",
    "tiktok": "Social",
    "search": "Search",
    "sem": "Search",
    "production": "Production",
}

CHANNEL_ORDER = ["TV", "BVOD", "YouTube", "Programmatic", "Social", "Search", "Production", "Other"]

_NUMBER_KEYS = ("line_item", "lineItem", "lineitem", "lineItemNumber")


def pick_line_item_number(record: Mapping[str, Any] | None, fallback: int) -> int:
    for key in _NUMBER_KEYS:
        try:
            number = float((record or {}).get(key))
        except (TypeError, ValueError):
            continue
        if number > 0 and number != float("inf"):
            return int(number)
    return fallback


def build_line_item_id(mba_number: str | None, media_type_code: str, line_item_number: int) -> str:
    base = (mba_number or "").strip() or media_type_code
    return f"{base}{media_type_code}{max(1, int(line_item_number))}"


def build_line_item_identity(
    record: Mapping[str, Any] | None,
    mba_number: str | None,
    media_type: str,
    fallback_index: int,
) -> tuple[str, int]:
    """Return ``(line_item_id, line_item_number)``; fallback_index is 0-based."""
    code = MEDIA_TYPE_ID_CODES.get(media_type)
    if code is None:
        raise ValueError(f"No line item id code for media type '{media_type}'")
    number = pick_line_item_number(record, fallback_index + 1)
    return build_line_item_id(mba_number, code, number), number


def _title_case(value: str) -> str:
    words = [w for w in re.split(r"[\s_-]+", value or "") if w]
    return " ".join(w[0].upper() + w[1:] for w in words) or "Other"


def resolve_channel(key: str) -> str:
    flat = re.sub(r"[\s_-]+", "", key or "").lower()
    return CHANNEL_LABELS.get(flat) or _title_case(key)


def sort_channels(channels: list[str]) -> list[str]:
    order = {name: idx for idx, name in enumerate(CHANNEL_ORDER)}
    return sorted(channels, key=lambda c: (order.get(c, len(order)), c))
