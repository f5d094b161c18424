import aiohttp
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from config.logger import logger
from core.dedup import deduplicate
from core.errors import SourceFetchError
from core.normalizer import normalize_offer, parse_timestamp
from core.policy import epic_policy
from models.offer import Classification, Offer, bucket_label


class EpicFreeGamesScraper:
    """Current and upcoming free games from the Epic Games Store promotions feed."""

    API_URL = "https://store-site-backend-static.ak.epicgames.com/freeGamesPromotions"

    def __init__(self, locale: str = "it", country: str = "IT", timeout: float = 30, require_free_signal: bool = False):
        self.locale = locale
        self.country = country
        self.timeout = timeout
        self.require_free_signal = require_free_signal
        self.policy = epic_policy(locale)
        self.source_id = self.policy.source_id
        self.price_is_identity = self.policy.price_is_identity
        self.current_label = bucket_label(self.source_id, Classification.CURRENT)
        self.upcoming_label = bucket_label(self.source_id, Classification.UPCOMING)
        self.bucket_labels: Tuple[str, ...] = (self.current_label, self.upcoming_label)

    async def fetch(self) -> Dict[str, List[Offer]]:
        params = {
            "locale": self.locale,
            "country": self.country,
            "allowCountries": self.country,
        }
        headers = {"user-agent": "epic-free-bot", "accept": "application/json"}

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(self.API_URL, params=params, headers=headers) as response:
                    if response.status != 200:
                        raise SourceFetchError(self.source_id, f"HTTP {response.status} {response.reason}")
                    data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise SourceFetchError(self.source_id, str(e)) from e
        except ValueError as e:
            raise SourceFetchError(self.source_id, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SourceFetchError(self.source_id, "unexpected payload")

        result = self.parse_promotions(data, datetime.now(timezone.utc))
        logger.info(
            f"🎮 Epic: {len(result[self.current_label])} free now, {len(result[self.upcoming_label])} upcoming"
        )
        return result

    def parse_promotions(self, data: dict, now: datetime) -> Dict[str, List[Offer]]:
        """
        Walks data.Catalog.searchStore.elements[].promotions.

        Returns:
            {"epic:current": [...], "epic:upcoming": [...]} deduplicated,
            current sorted by end date and upcoming by start date
        """
        elements = (((data.get("data") or {}).get("Catalog") or {}).get("searchStore") or {}).get("elements") or []

        current: List[Offer] = []
        upcoming: List[Offer] = []

        for el in elements:
            if not isinstance(el, dict):
                continue
            promos = el.get("promotions")
            if not promos:
                continue

            for promo in _iter_offers(promos.get("promotionalOffers")):
                offer = self._to_offer(el, promo, now)
                if offer and offer.classification is Classification.CURRENT:
                    current.append(offer)

            # Epic publishes next week's games here once announced
            for promo in _iter_offers(promos.get("upcomingPromotionalOffers")):
                offer = self._to_offer(el, promo, now)
                if offer and offer.classification is Classification.UPCOMING:
                    upcoming.append(offer)

        current = sorted(deduplicate(current, self.policy), key=lambda o: _sort_time(o.window_end))
        upcoming = sorted(deduplicate(upcoming, self.policy), key=lambda o: _sort_time(o.window_start))
        return {self.current_label: current, self.upcoming_label: upcoming}

    def _to_offer(self, el: dict, promo: dict, now: datetime) -> Optional[Offer]:
        start = parse_timestamp(promo.get("startDate"))
        end = parse_timestamp(promo.get("endDate"))
        offer = normalize_offer(flatten_element(el, promo), start, end, self.policy, now)
        if offer and self.require_free_signal and offer.free_signal <= 0:
            logger.info(f"⏭️ Epic: skipping '{offer.title}' (no free signal)")
            return None
        return offer


def _iter_offers(buckets):
    for bucket in buckets or []:
        if not isinstance(bucket, dict):
            continue
        for promo in bucket.get("promotionalOffers") or []:
            if isinstance(promo, dict):
                yield promo


def _sort_time(value: Optional[datetime]) -> datetime:
    return value or datetime.max.replace(tzinfo=timezone.utc)


def flatten_element(el: dict, promo: dict) -> dict:
    """One flat record per (element, promotion) for the Epic source policy."""
    price = ((el.get("price") or {}).get("totalPrice") or {})
    currency_info = price.get("currencyInfo") or {}
    discount_setting = promo.get("discountSetting") or {}

    page_slug = None
    for mapping in (el.get("offerMappings") or []) + ((el.get("catalogNs") or {}).get("mappings") or []):
        if isinstance(mapping, dict) and mapping.get("pageSlug"):
            page_slug = mapping["pageSlug"]
            break

    return {
        "id": el.get("id"),
        "title": el.get("title"),
        "productSlug": el.get("productSlug"),
        "pageSlug": page_slug,
        "urlSlug": el.get("urlSlug"),
        "originalPrice": price.get("originalPrice"),
        "discountPrice": price.get("discountPrice"),
        "currencyCode": price.get("currencyCode"),
        "currencyDecimals": currency_info.get("decimals"),
        "promoDiscountPercentage": discount_setting.get("discountPercentage"),
    }
