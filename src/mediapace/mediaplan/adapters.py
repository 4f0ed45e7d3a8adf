"""Per-media-type field adapters.

Each media container stores line items with its own field names. An adapter
maps a canonical field to the source keys that may hold it; the first key
holding a non-empty value wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

FieldTable = dict[str, tuple[str, ...]]

BASE_FIELDS: FieldTable = {
    "id": ("line_item_id", "lineItemId", "line_item_id_string", "lineitemid", "id"),
    "number": ("line_item", "lineItem", "lineitem", "lineItemNumber", "line_item_number"),
    "created_at": ("created_at", "createdAt", "created"),
    "bursts": ("bursts_json", "bursts", "burstsJson"),
    "burst_start": ("start_date", "startDate", "start"),
    "burst_end": ("end_date", "endDate", "end"),
    "burst_budget": ("budget", "media_investment", "mediaInvestment", "amount", "spend", "investment"),
    "burst_buy_amount": ("buyAmount", "buy_amount", "totalMedia", "grossMedia"),
    "burst_deliverable": (
        "calculatedValue",
        "calculated_value",
        "deliverables",
        "deliverablesAmount",
        "timps",
        "tarps",
        "spots",
        "insertions",
        "screens",
        "impressions",
        "clicks",
    ),
    "fallback_start": ("start_date", "startDate", "placement_date", "placementDate"),
    "fallback_end": ("end_date", "endDate", "placement_date", "placementDate"),
    "fallback_budget": ("budget", "totalMedia", "grossMedia", "media_investment", "spend", "amount"),
    "fallback_deliverable": (
        "deliverables",
        "timps",
        "tarps",
        "spots",
        "insertions",
        "screens",
        "impressions",
        "clicks",
    ),
    "total_media": ("totalMedia", "grossMedia", "budget", "spend"),
    "title": ("creative", "placement", "title", "description"),
    "targeting": (
        "targeting",
        "creative_targeting",
        "creativeTargeting",
        "targeting_attribute",
        "targetingAttribute",
    ),
    "publisher": ("publisher", "platform", "network", "site", "station"),
    "platform": ("platform",),
    "network": ("network",),
    "station": ("station",),
    "site": ("site",),
    "creative": ("creative",),
    "buy_type": ("buy_type", "buyType"),
    "buying_demo": ("buying_demo", "buyingDemo"),
    "market": ("market", "geo", "region"),
}

_BROADCAST_PUBLISHER = ("network", "station", "publisher", "platform")
_PRINT_PUBLISHER = ("publisher", "network", "title")

MEDIA_TYPE_OVERRIDES: dict[str, FieldTable] = {
    "television": {
        "title": ("placement", "creative", "daypart", "title"),
        "targeting": ("buyingDemo", "buying_demo", "daypart", "targeting"),
        "publisher": ("network", "station", "placement", "publisher"),
        "market": ("market", "region"),
    },
    "radio": {
        "publisher": _BROADCAST_PUBLISHER,
        "targeting": ("targeting", "buyingDemo", "buying_demo", "daypart"),
    },
    "newspaper": {"publisher": _PRINT_PUBLISHER},
    "magazines": {"publisher": _PRINT_PUBLISHER},
    "ooh": {
        "publisher": ("network", "publisher"),
        "title": ("format", "oohFormat", "ooh_format", "creative", "placement"),
    },
    "cinema": {
        "publisher": ("network", "publisher"),
        "title": ("format", "creative", "placement"),
    },
}

_MEDIA_TYPE_ALIASES = {
    "tv": "television",
    "digitaldisplay": "digiDisplay",
    "digidisplay": "digiDisplay",
    "digitalaudio": "digiAudio",
    "digiaudio": "digiAudio",
    "digitalvideo": "digiVideo",
    "digivideo": "digiVideo",
    "socialmedia": "socialMedia",
    "social": "socialMedia",
    "progdisplay": "progDisplay",
    "progvideo": "progVideo",
    "progbvod": "progBvod",
    "progaudio": "progAudio",
    "progooh": "progOoh",
}


def canonical_media_type(media_type: str | None) -> str:
    key = (media_type or "").strip()
    flat = key.replace("_", "").replace("-", "").replace(" ", "").lower()
    if flat in _MEDIA_TYPE_ALIASES:
        return _MEDIA_TYPE_ALIASES[flat]
    if flat in MEDIA_TYPE_OVERRIDES:
        return flat
    return key


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


@dataclass(frozen=True)
class MediaTypeAdapter:
    media_type: str
    fields: FieldTable = field(default_factory=dict)

    def keys(self, canonical: str) -> tuple[str, ...]:
        return self.fields.get(canonical, ())

    def pick(self, record: Mapping[str, Any] | None, canonical: str, default: Any = None) -> Any:
        if not record:
            return default
        for key in self.keys(canonical):
            value = record.get(key)
            if _is_present(value):
                return value
        return default

    def pick_text(self, record: Mapping[str, Any] | None, canonical: str) -> str:
        value = self.pick(record, canonical)
        return str(value).strip() if value is not None else ""


def adapter_for(media_type: str | None) -> MediaTypeAdapter:
    media = canonical_media_type(media_type)
    fields = dict(BASE_FIELDS)
    fields.update(MEDIA_TYPE_OVERRIDES.get(media, {}))
    return MediaTypeAdapter(media_type=media, fields=fields)
