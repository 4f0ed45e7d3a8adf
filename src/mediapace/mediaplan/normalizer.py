"""Normalize raw per-container line-item records into canonical line items."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..utils.dates import parse_date, parse_timestamp
from ..utils.logging_config import StructuredLogger
from ..utils.money import non_negative, to_decimal
from .adapters import MediaTypeAdapter, adapter_for
from .line_item_ids import MEDIA_TYPE_ID_CODES, build_line_item_identity, resolve_channel
from .models import Burst, LineItem, LineItemAttributes

logger = StructuredLogger(__name__)

_AUTO_LABELS = {"auto", "auto allocation"}


def clean_label(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    if text.lower() in _AUTO_LABELS:
        return ""
    return text


def _parse_line_item_number(value: Any) -> int | None:
    try:
        number = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


def _load_bursts(value: Any) -> list[Mapping[str, Any]]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Unparsable bursts payload", preview=text[:80])
            return []
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, (list, tuple)):
        return [b for b in value if isinstance(b, Mapping)]
    return []


def _raw_burst_key(raw: Mapping[str, Any], adapter: MediaTypeAdapter) -> tuple[str, str, str, str]:
    return (
        str(adapter.pick(raw, "burst_start", "")),
        str(adapter.pick(raw, "burst_end", "")),
        str(to_decimal(adapter.pick(raw, "burst_budget"))),
        str(to_decimal(adapter.pick(raw, "burst_buy_amount"))),
    )


def _make_burst(start_raw: Any, end_raw: Any, budget: Any, deliverable: Any) -> Burst | None:
    start = parse_date(start_raw)
    end = parse_date(end_raw)
    if start is None and end is None:
        return None
    start = start or end
    end = end or start
    if end < start:
        start, end = end, start
    return Burst(
        start_date=start,
        end_date=end,
        budget_amount=non_negative(budget),
        deliverable_amount=non_negative(deliverable),
    )


def _burst_from_raw(raw: Mapping[str, Any], adapter: MediaTypeAdapter) -> Burst | None:
    return _make_burst(
        adapter.pick(raw, "burst_start"),
        adapter.pick(raw, "burst_end"),
        adapter.pick(raw, "burst_budget"),
        adapter.pick(raw, "burst_deliverable"),
    )


def _fallback_burst(record: Mapping[str, Any], adapter: MediaTypeAdapter) -> Burst | None:
    return _make_burst(
        adapter.pick(record, "fallback_start"),
        adapter.pick(record, "fallback_end"),
        adapter.pick(record, "fallback_budget"),
        adapter.pick(record, "fallback_deliverable"),
    )


@dataclass
class _Group:
    line_item_id: str
    records: list[tuple[int, Mapping[str, Any]]] = field(default_factory=list)
    raw_keys: set[tuple] = field(default_factory=set)
    bursts: dict[tuple, Burst] = field(default_factory=dict)

    def add_burst(self, burst: Burst | None) -> None:
        if burst is not None:
            self.bursts.setdefault(burst.dedupe_key(), burst)


def _rank(index: int, record: Mapping[str, Any], adapter: MediaTypeAdapter) -> tuple:
    # Lower line item number wins, then earlier creation, then input position
    number = _parse_line_item_number(adapter.pick(record, "number"))
    created = parse_timestamp(adapter.pick(record, "created_at"))
    return (
        number is None,
        number or 0,
        created is None,
        created or 0.0,
        index,
    )


def _group_id(record: Mapping[str, Any], index: int, adapter: MediaTypeAdapter, mba_number: str | None) -> str:
    raw_id = adapter.pick_text(record, "id").lower()
    if raw_id:
        return raw_id
    if mba_number and adapter.media_type in MEDIA_TYPE_ID_CODES:
        line_item_id, _ = build_line_item_identity(record, mba_number, adapter.media_type, index)
        return line_item_id.lower()
    return f"__idx_{index}"


def _attributes(record: Mapping[str, Any], adapter: MediaTypeAdapter) -> LineItemAttributes:
    return LineItemAttributes(
        platform=clean_label(adapter.pick(record, "platform")),
        network=clean_label(adapter.pick(record, "network")),
        station=clean_label(adapter.pick(record, "station")),
        site=clean_label(adapter.pick(record, "site")),
        publisher=clean_label(adapter.pick(record, "publisher")),
        targeting=clean_label(adapter.pick(record, "targeting")),
        creative=clean_label(adapter.pick(record, "creative")),
        buy_type=clean_label(adapter.pick(record, "buy_type")),
        buying_demo=clean_label(adapter.pick(record, "buying_demo")),
        market=clean_label(adapter.pick(record, "market")),
    )


def _first_clean(record: Mapping[str, Any], adapter: MediaTypeAdapter, canonical: str) -> str:
    # Walk the keys so a cleaned-away "auto" label falls through to the next one
    for key in adapter.keys(canonical):
        label = clean_label(record.get(key))
        if label:
            return label
    return ""


def normalize(
    raw_records: Iterable[Mapping[str, Any]] | None,
    media_type: str,
    adapter: MediaTypeAdapter | None = None,
    mba_number: str | None = None,
) -> list[LineItem]:
    """Group raw records by line-item id and merge their bursts.

    Never raises for malformed records: bad dates drop the burst, bad amounts
    become zero, missing labels become empty strings. Records without an id
    get a derived one when ``mba_number`` is given.
    """
    adapter = adapter or adapter_for(media_type)
    channel = resolve_channel(adapter.media_type)
    groups: dict[str, _Group] = {}

    for index, record in enumerate(raw_records or []):
        if not isinstance(record, Mapping):
            logger.debug("Skipping non-mapping line item record", index=index, media_type=media_type)
            continue
        gid = _group_id(record, index, adapter, mba_number)
        group = groups.setdefault(gid, _Group(line_item_id=gid))
        group.records.append((index, record))

        datable = 0
        for raw in _load_bursts(adapter.pick(record, "bursts")):
            burst = _burst_from_raw(raw, adapter)
            if burst is None:
                continue
            datable += 1
            key = _raw_burst_key(raw, adapter)
            if key in group.raw_keys:
                continue
            group.raw_keys.add(key)
            group.add_burst(burst)
        if datable == 0:
            group.add_burst(_fallback_burst(record, adapter))

    items: list[LineItem] = []
    for group in groups.values():
        base_index, base = min(group.records, key=lambda pair: _rank(pair[0], pair[1], adapter))
        bursts = sorted(group.bursts.values(), key=Burst.dedupe_key)
        title = _first_clean(base, adapter, "title") or f"Line item {group.line_item_id}"
        total_media = non_negative(adapter.pick(base, "total_media"))
        if total_media == 0 and bursts:
            total_media = sum((b.budget_amount for b in bursts), total_media)

        items.append(
            LineItem(
                line_item_id=group.line_item_id,
                media_type=adapter.media_type,
                attributes=_attributes(base, adapter),
                bursts=bursts,
                title=title,
                line_item_number=_parse_line_item_number(adapter.pick(base, "number")),
                total_media=total_media,
                channel=channel,
                source_index=base_index,
                raw=dict(base),
            )
        )

    if logger.is_debug():
        logger.debug(
            "Normalized line items",
            media_type=adapter.media_type,
            records=sum(len(g.records) for g in groups.values()),
            line_items=len(items),
            bursts=sum(len(i.bursts) for i in items),
        )
    return items


def burst_from_mapping(raw: Mapping[str, Any], media_type: str = "") -> Burst | None:
    """Parse one loose burst dict (any accepted field names). None when undatable."""
    return _burst_from_raw(raw, adapter_for(media_type))
