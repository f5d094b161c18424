"""
Steam deals through the IsThereAnyDeal API (deals/v2). No scraping.

Filters: games only, no mature content, EUR prices, cut >= min discount,
final price <= max final, regular price > max final, optional strict AAA
keyword list. Editions of one game collapse to the cheapest variant.
"""

import aiohttp
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from config.logger import logger
from core.dedup import deduplicate
from core.errors import SourceFetchError
from core.normalizer import normalize_offer, parse_timestamp
from core.policy import ITAD_POLICY
from models.offer import Classification, Offer, bucket_label
from utils.title_keys import matches_keywords

STEAM_SHOP_ID = 61
PAGE_SIZE = 200


class ItadSteamDealsScraper:
    API_URL = "https://api.isthereanydeal.com/deals/v2"

    def __init__(
        self,
        api_key: Optional[str],
        country: str = "IT",
        max_final_eur: float = 9.0,
        min_discount_pct: int = 50,
        max_results: int = 60,
        strict_aaa: bool = False,
        aaa_target: int = 12,
        aaa_keywords: Optional[List[str]] = None,
        aaa_min_token_len: int = 4,
        max_pages: int = 10,
        user_agent: str = "free-games-telegram-bot/1.0",
        timeout: float = 30,
    ):
        self.api_key = api_key
        self.country = country
        self.max_final_eur = max_final_eur
        self.min_discount_pct = min_discount_pct
        self.max_results = max_results
        self.strict_aaa = strict_aaa
        self.aaa_target = aaa_target
        self.aaa_keywords = aaa_keywords or []
        self.aaa_min_token_len = aaa_min_token_len
        self.max_pages = max_pages
        self.user_agent = user_agent
        self.timeout = timeout

        self.policy = ITAD_POLICY
        self.source_id = self.policy.source_id
        self.price_is_identity = self.policy.price_is_identity
        self.label = bucket_label(self.source_id, Classification.CURRENT)
        self.bucket_labels: Tuple[str, ...] = (self.label,)

        if not self.api_key:
            logger.warning("⚠️ ITAD_API_KEY not set! Steam deals will show as unavailable.")

    @property
    def want(self) -> int:
        """How many deals end up in the message."""
        if self.strict_aaa:
            return max(1, self.aaa_target)
        return max(10, min(self.max_results, 200))

    async def fetch(self) -> Dict[str, List[Offer]]:
        if not self.api_key:
            raise SourceFetchError(self.source_id, "ITAD_API_KEY missing (register one at isthereanydeal.com -> My Apps)")

        now = datetime.now(timezone.utc)
        candidates: List[Offer] = []
        seen_raw: Set[str] = set()
        families: Set[str] = set()
        offset = 0

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                for _ in range(self.max_pages):
                    data = await self._get_page(session, offset)
                    items = data.get("list") or []
                    if not items:
                        break

                    for offer in self.select_items(items, now, seen_raw):
                        candidates.append(offer)
                        families.add(self.policy.identity(offer))

                    # Scan past the target so a specific title is less likely to be missed
                    if len(families) >= self.want * 3:
                        break
                    if not data.get("hasMore"):
                        break
                    try:
                        offset = int(data.get("nextOffset", offset + PAGE_SIZE))
                    except (TypeError, ValueError):
                        break
        except aiohttp.ClientError as e:
            raise SourceFetchError(self.source_id, str(e)) from e

        deals = self.finalize(candidates)
        logger.info(f"💸 ITAD: {len(deals)} Steam deals selected")
        return {self.label: deals}

    async def _get_page(self, session: aiohttp.ClientSession, offset: int) -> dict:
        params = {
            "key": self.api_key,
            "country": self.country,
            "shops": str(STEAM_SHOP_ID),
            "limit": str(PAGE_SIZE),
            "offset": str(offset),
            "sort": "-cut",
        }
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
            "x-api-key": self.api_key,
        }
        async with session.get(self.API_URL, params=params, headers=headers) as response:
            if response.status != 200:
                text = (await response.text())[:160]
                raise SourceFetchError(self.source_id, f"HTTP {response.status}{' - ' + text if text else ''}")
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise SourceFetchError(self.source_id, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SourceFetchError(self.source_id, "unexpected payload")
        return data

    def select_items(self, items: List[dict], now: datetime, seen_raw: Optional[Set[str]] = None) -> List[Offer]:
        """Applies the deal filters to one page of results and normalizes the survivors."""
        seen_raw = seen_raw if seen_raw is not None else set()
        offers = []

        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("deal"), dict):
                continue
            if item.get("type") and item.get("type") != "game":
                continue
            if item.get("mature") is True:
                continue

            deal = item["deal"]
            cut = deal.get("cut") or 0
            price = (deal.get("price") or {}).get("amount")
            regular = (deal.get("regular") or {}).get("amount")
            currency = (deal.get("price") or {}).get("currency")

            if currency and currency != "EUR":
                continue
            if not isinstance(cut, (int, float)) or cut < self.min_discount_pct:
                continue
            if not isinstance(price, (int, float)) or price > self.max_final_eur:
                continue
            if not isinstance(regular, (int, float)) or regular <= self.max_final_eur:
                continue

            title = item.get("title") or item.get("slug") or ""
            if self.strict_aaa and not matches_keywords(title, self.aaa_keywords, self.aaa_min_token_len):
                continue

            raw_key = f"{item.get('id')}|{cut}|{price}|{regular}"
            if raw_key in seen_raw:
                continue
            seen_raw.add(raw_key)

            raw = {
                "id": item.get("id"),
                "slug": item.get("slug"),
                "title": item.get("title"),
                "url": deal.get("url"),
                "cut": cut,
                "price": price,
                "regular": regular,
                "currency": currency,
            }
            offer = normalize_offer(raw, None, parse_timestamp(deal.get("expiry")), self.policy, now)
            if offer:
                offers.append(offer)

        return offers

    def finalize(self, candidates: List[Offer]) -> List[Offer]:
        """Cheapest edition per game, best-known titles first, sliced to the target size."""
        unique = deduplicate(candidates, self.policy)
        unique.sort(key=lambda o: (
            -(o.price_facts.original_amount or 0),
            -(o.discount_percent or 0),
            o.final_amount if o.final_amount is not None else 999,
            o.title,
        ))
        if self.strict_aaa:
            return unique[:self.want]
        return unique[:min(self.max_results, len(unique))]
