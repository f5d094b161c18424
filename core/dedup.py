"""
Identity-based deduplication.
Keeps one offer per identity key, picking the representative by a fixed tie-break.
"""

import math
from datetime import datetime, timezone
from typing import Dict, List

from core.policy import SourcePolicy
from models.offer import Offer

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def preference_key(offer: Offer) -> tuple:
    """
    Lower sorts first. Order of preference:
    stronger free signal, lower final price, higher discount, earlier end.
    Unknown values lose to known ones. Title then url settle exact ties,
    so the survivor never depends on feed order.
    """
    final = offer.final_amount
    discount = offer.discount_percent
    return (
        -offer.free_signal,
        final if final is not None else math.inf,
        -discount if discount is not None else math.inf,
        offer.window_end or _FAR_FUTURE,
        offer.title,
        offer.url,
    )


def deduplicate(offers: List[Offer], policy: SourcePolicy) -> List[Offer]:
    """
    Collapse offers sharing the policy's identity key.

    Args:
        offers: Offers from one source/bucket
        policy: Source declarations (identity function)

    Returns:
        One offer per key, in first-seen key order
    """
    best: Dict[str, Offer] = {}
    for offer in offers:
        key = policy.identity(offer)
        existing = best.get(key)
        if existing is None or preference_key(offer) < preference_key(existing):
            best[key] = offer
    return list(best.values())
