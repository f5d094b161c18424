"""
Per-source declarations: how raw records map to offers, what "free" means
for that source, and which fields make two offers the same item.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from models.offer import Offer, PriceFacts
from utils.title_keys import MYSTERY_TITLE, is_mystery_title, normalize_title_key


def _iso(value) -> str:
    return value.isoformat() if value else ""


# --- Identity keys ---

def default_identity(offer: Offer) -> str:
    return f"{offer.title.strip()}|{offer.url}"


def url_identity(offer: Offer) -> str:
    return offer.url


def title_family_identity(offer: Offer) -> str:
    return normalize_title_key(offer.title)


def windowed_identity(offer: Offer) -> str:
    """Same game offered in two different windows counts twice."""
    return f"{default_identity(offer)}|{_iso(offer.window_start)}|{_iso(offer.window_end)}"


# --- Default strategies ---

def no_free_signal(raw: dict) -> int:
    return 0


def no_price_facts(raw: dict) -> Optional[PriceFacts]:
    return None


@dataclass(frozen=True)
class SourcePolicy:
    source_id: str
    title_fields: Tuple[str, ...] = ("title",)
    product_id_fields: Tuple[str, ...] = ()
    url_template: Optional[str] = None
    fallback_url: str = ""
    direct_url_field: Optional[str] = None
    identity: Callable[[Offer], str] = default_identity
    # A deals feed's offer *is* a price point: price then takes part in the fingerprint
    price_is_identity: bool = False
    free_signal: Callable[[dict], int] = no_free_signal
    price_facts: Callable[[dict], Optional[PriceFacts]] = no_price_facts
    title_transform: Optional[Callable[[str], str]] = None


# --- Epic Games Store ---

def _number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def epic_free_signal(raw: dict) -> int:
    """
    2 = the catalog price after discount is zero,
    1 = the promotion itself says "pay 0%",
    0 = no signal.
    """
    if _number(raw.get("discountPrice")) == 0.0:
        return 2
    if _number(raw.get("promoDiscountPercentage")) == 0.0:
        return 1
    return 0


def epic_price_facts(raw: dict) -> Optional[PriceFacts]:
    original = _number(raw.get("originalPrice"))
    final = _number(raw.get("discountPrice"))
    decimals = raw.get("currencyDecimals")
    if not isinstance(decimals, int) or isinstance(decimals, bool):
        decimals = 2

    # Epic's discountPercentage is the share still to pay (0 == free)
    pay_share = _number(raw.get("promoDiscountPercentage"))
    discount = int(round(100 - pay_share)) if pay_share is not None else None

    if original is None and final is None and discount is None:
        return None

    scale = 10 ** decimals
    return PriceFacts(
        original_amount=original / scale if original is not None else None,
        final_amount=final / scale if final is not None else None,
        currency=raw.get("currencyCode") or None,
        discount_percent=discount,
    )


def epic_title_transform(title: str) -> str:
    return MYSTERY_TITLE if is_mystery_title(title) else title


def epic_policy(locale: str = "it") -> SourcePolicy:
    return SourcePolicy(
        source_id="epic",
        title_fields=("title",),
        product_id_fields=("productSlug", "pageSlug", "urlSlug"),
        url_template=f"https://store.epicgames.com/{locale}/p/{{product_id}}",
        fallback_url=f"https://store.epicgames.com/{locale}/free-games",
        identity=windowed_identity,
        free_signal=epic_free_signal,
        price_facts=epic_price_facts,
        title_transform=epic_title_transform,
    )


# --- IsThereAnyDeal (Steam shop) ---

def itad_free_signal(raw: dict) -> int:
    return 2 if _number(raw.get("price")) == 0.0 else 0


def itad_price_facts(raw: dict) -> Optional[PriceFacts]:
    cut = _number(raw.get("cut"))
    return PriceFacts(
        original_amount=_number(raw.get("regular")),
        final_amount=_number(raw.get("price")),
        currency=raw.get("currency") or None,
        discount_percent=int(cut) if cut is not None else None,
    )


ITAD_POLICY = SourcePolicy(
    source_id="itad",
    title_fields=("title", "slug"),
    product_id_fields=("slug",),
    url_template="https://isthereanydeal.com/game/{product_id}/",
    fallback_url="https://isthereanydeal.com/deals/",
    direct_url_field="url",
    identity=title_family_identity,
    price_is_identity=True,
    free_signal=itad_free_signal,
    price_facts=itad_price_facts,
)
