"""
Segment Aggregator

Sums per-segment volumes into the total monthly volume that drives revenue.
Each segment's contribution is clamped at zero before summing.
"""

from typing import Any, Dict, List, Optional

from document_utils import dig, read_dicts
from growth_patterns import GrowthDefaults, segment_base_volume
from override_resolvers import dynamic_segment_volume


def customer_segments(document: Any) -> List[Dict[str, Any]]:
    return read_dicts(dig(document, "assumptions", "customers", "segments"))


def find_segment(document: Any, segment_id: str) -> Optional[Dict[str, Any]]:
    for segment in customer_segments(document):
        if segment.get("id") == segment_id:
            return segment
    return None


def total_base_volume(document: Any, month: int, defaults: Optional[GrowthDefaults] = None) -> float:
    """Total pattern volume for a month, ignoring yearly adjustments"""
    if defaults is None:
        defaults = GrowthDefaults.from_document(document)
    return sum(max(0.0, segment_base_volume(s, month, defaults)) for s in customer_segments(document))


def total_volume(document: Any, month: int, defaults: Optional[GrowthDefaults] = None) -> float:
    """Total volume for a month with overrides and yearly factors applied"""
    if defaults is None:
        defaults = GrowthDefaults.from_document(document)
    return sum(max(0.0, dynamic_segment_volume(s, month, defaults)) for s in customer_segments(document))
