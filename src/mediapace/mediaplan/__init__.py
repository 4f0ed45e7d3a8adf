"""Media plan line items: canonical model, adapters and normalizer."""

from .adapters import MediaTypeAdapter, adapter_for, canonical_media_type
from .line_item_ids import build_line_item_id, build_line_item_identity, resolve_channel, sort_channels
from .models import Burst, LineItem, LineItemAttributes
from .normalizer import burst_from_mapping, clean_label, normalize

__all__ = [
    "Burst",
    "LineItem",
    "LineItemAttributes",
    "MediaTypeAdapter",
    "adapter_for",
    "canonical_media_type",
    "build_line_item_id",
    "build_line_item_identity",
    "resolve_channel",
    "sort_channels",
    "burst_from_mapping",
    "clean_label",
    "normalize",
]
