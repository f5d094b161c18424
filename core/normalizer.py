from typing import Optional
from datetime import datetime, timezone

from config.logger import logger
from core.policy import SourcePolicy
from models.offer import PLACEHOLDER_TITLE, Classification, Offer


def parse_timestamp(value) -> Optional[datetime]:
    """Parses ISO-8601 like 2025-12-12T16:00:00.000Z. Returns None on anything else."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def classify_window(start: Optional[datetime], end: Optional[datetime], now: datetime) -> Optional[Classification]:
    """
    CURRENT when start <= now < end, UPCOMING when start > now.
    A missing bound is open. Returns None for windows entirely in the past.
    """
    if start is not None and start > now:
        return Classification.UPCOMING
    if end is not None and end <= now:
        return None
    return Classification.CURRENT


def _first_value(raw: dict, fields) -> Optional[str]:
    for field in fields:
        value = raw.get(field)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def build_url(raw: dict, policy: SourcePolicy) -> str:
    """Direct URL, else the policy template filled with a stable product id, else the fallback URL."""
    if policy.direct_url_field:
        direct = _first_value(raw, (policy.direct_url_field,))
        if direct and direct.startswith("http"):
            return direct

    product_id = _first_value(raw, policy.product_id_fields)
    if product_id and policy.url_template:
        return policy.url_template.format(product_id=product_id)

    return policy.fallback_url


def normalize_offer(
    raw: dict,
    window_start: Optional[datetime],
    window_end: Optional[datetime],
    policy: SourcePolicy,
    now: datetime,
) -> Optional[Offer]:
    """
    Maps one raw source record to an Offer.

    Args:
        raw: Flat source record
        window_start: Resolved start of validity (or None)
        window_end: Resolved end of validity (or None)
        policy: Declarations of the source that produced the record
        now: Reference time for classification

    Returns:
        The Offer, or None when the window is already over
    """
    classification = classify_window(window_start, window_end, now)
    if classification is None:
        return None

    title = _first_value(raw, policy.title_fields) or PLACEHOLDER_TITLE
    if policy.title_transform:
        title = policy.title_transform(title) or PLACEHOLDER_TITLE

    try:
        price_facts = policy.price_facts(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"⚠️ [{policy.source_id}] Unreadable price for '{title}': {e}")
        price_facts = None

    try:
        free_signal = int(policy.free_signal(raw) or 0)
    except (TypeError, ValueError) as e:
        logger.warning(f"⚠️ [{policy.source_id}] Unreadable free signal for '{title}': {e}")
        free_signal = 0

    return Offer(
        title=title,
        url=build_url(raw, policy),
        window_start=window_start,
        window_end=window_end,
        price_facts=price_facts,
        source_id=policy.source_id,
        classification=classification,
        free_signal=free_signal,
        product_id=_first_value(raw, policy.product_id_fields),
    )
