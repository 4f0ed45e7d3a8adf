"""Schedule header1/header2 per media container."""

from __future__ import annotations

from typing import Any, Mapping

PLATFORM_TARGETING_TYPES = frozenset(
    {"search", "socialMedia", "progDisplay", "progVideo", "progBvod", "progAudio", "progOoh"}
)

_TARGETING_KEYS = ("targeting", "creativeTargeting", "creative_targeting", "targetingAttribute", "targeting_attribute")


def pick(*values: Any) -> str:
    """First non-empty value as a stripped string."""
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def schedule_headers(media_type: str, record: Mapping[str, Any] | None) -> tuple[str, str]:
    r = record or {}
    g = r.get

    if media_type in PLATFORM_TARGETING_TYPES:
        return pick(g("platform"), g("publisher"), g("network")), pick(*(g(k) for k in _TARGETING_KEYS))
    if media_type == "television":
        return pick(g("network")), pick(g("station"))
    if media_type == "radio":
        return pick(g("network"), g("platform")), pick(g("station"), g("bid_strategy"), g("bidStrategy"))
    if media_type in ("newspaper", "magazines"):
        return pick(g("publisher"), g("network")), pick(g("title"))
    if media_type in ("digiDisplay", "digiAudio", "digiVideo", "bvod"):
        return pick(g("publisher")), pick(g("site"))
    if media_type == "ooh":
        return pick(g("network")), pick(g("format"), g("oohFormat"), g("ooh_format"))
    if media_type == "cinema":
        return pick(g("network")), pick(g("format"), g("creative"), g("station"))
    if media_type == "production":
        return pick(g("header1"), "Production"), pick(g("header2"), "Total")
    return (
        pick(g("network"), g("publisher"), g("platform"), g("header1"), "Item"),
        pick(g("station"), g("site"), g("title"), g("format"), g("header2"), "Details"),
    )
