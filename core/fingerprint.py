"""
Order-independent fingerprint of one observation.

An observation maps bucket labels ("epic:current", "itad:current", ...) to the
offers seen in that bucket, or to None when the source failed this cycle.
"""

import hashlib
import json
from typing import Dict, Iterable, List, Optional, Tuple

from models.offer import Offer

SOURCE_ERROR = "SOURCE_ERROR"
BUCKET_SEP = "||"

Observation = Dict[str, Optional[List[Offer]]]


def _iso(value) -> str:
    return value.isoformat() if value else ""


def stable_key(offer: Offer, price_is_identity: bool = False) -> Tuple[str, ...]:
    """
    Fields that identify an offer's content. Formatted price text never takes
    part; the numeric final price only does when the source declares it.
    """
    discount = offer.discount_percent
    key = (
        offer.title.strip(),
        offer.url,
        _iso(offer.window_start),
        _iso(offer.window_end),
        str(discount) if discount is not None else "",
    )
    if price_is_identity:
        final = offer.final_amount
        key += (f"{final:.2f}" if final is not None else "",)
    return key


def _bucket_body(offers: Optional[List[Offer]], price_is_identity: bool) -> str:
    if offers is None:
        return SOURCE_ERROR
    # JSON keeps separators inside titles or urls from blurring field boundaries
    keys = sorted(list(stable_key(o, price_is_identity)) for o in offers)
    return json.dumps(keys, ensure_ascii=False, separators=(",", ":"))


def canonical_material(buckets: Observation, price_identity_sources: Iterable[str] = ()) -> str:
    """Plain-text form of the observation. Only ever hashed, never parsed back."""
    price_sources = set(price_identity_sources)
    parts = []
    for label in sorted(buckets):
        source_id = label.split(":", 1)[0]
        body = _bucket_body(buckets[label], source_id in price_sources)
        parts.append(f"{label}={body}")
    return BUCKET_SEP.join(parts)


def build_fingerprint(buckets: Observation, price_identity_sources: Iterable[str] = ()) -> str:
    material = canonical_material(buckets, price_identity_sources)
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
