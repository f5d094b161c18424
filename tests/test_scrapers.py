import pytest

from conftest import NOW
from core.errors import SourceFetchError
from scrapers.epic import EpicFreeGamesScraper
from scrapers.itad import ItadSteamDealsScraper
from utils.title_keys import MYSTERY_TITLE


def _epic_element(title, slug, start, end, upcoming=False, discount_price=0, pay_share=0):
    promo = {"promotionalOffers": [{"startDate": start, "endDate": end,
                                    "discountSetting": {"discountType": "PERCENTAGE", "discountPercentage": pay_share}}]}
    promotions = {"promotionalOffers": [], "upcomingPromotionalOffers": []}
    promotions["upcomingPromotionalOffers" if upcoming else "promotionalOffers"].append(promo)
    return {
        "title": title,
        "id": f"id-{slug}",
        "productSlug": slug,
        "urlSlug": f"url-{slug}" if slug else None,
        "price": {"totalPrice": {"originalPrice": 1999, "discountPrice": discount_price, "currencyCode": "EUR",
                                 "currencyInfo": {"decimals": 2}}},
        "promotions": promotions,
    }


def _epic_payload(*elements):
    return {"data": {"Catalog": {"searchStore": {"elements": list(elements)}}}}


class TestEpic:
    def test_parse_current_and_upcoming(self):
        payload = _epic_payload(
            _epic_element("Hades", "hades", "2025-12-11T16:00:00.000Z", "2025-12-18T16:00:00.000Z"),
            _epic_element("Celeste", "celeste", "2025-12-10T16:00:00.000Z", "2025-12-17T16:00:00.000Z"),
            _epic_element("Mystery Game 01", None, "2025-12-18T16:00:00.000Z", "2025-12-25T16:00:00.000Z", upcoming=True),
            _epic_element("Old Game", "old", "2025-12-01T16:00:00.000Z", "2025-12-08T16:00:00.000Z"),
            {"title": "No promotions", "promotions": None},
        )
        scraper = EpicFreeGamesScraper(locale="it", country="IT")

        result = scraper.parse_promotions(payload, NOW)

        current = result["epic:current"]
        upcoming = result["epic:upcoming"]
        # Sorted by end date
        assert [o.title for o in current] == ["Celeste", "Hades"]
        assert current[1].url == "https://store.epicgames.com/it/p/hades"
        assert current[1].free_signal == 2
        assert [o.title for o in upcoming] == [MYSTERY_TITLE]
        assert upcoming[0].url == "https://store.epicgames.com/it/free-games"

    def test_duplicate_promotions_collapse(self):
        el = _epic_element("Hades", "hades", "2025-12-11T16:00:00.000Z", "2025-12-18T16:00:00.000Z")
        result = EpicFreeGamesScraper().parse_promotions(_epic_payload(el, el), NOW)
        assert len(result["epic:current"]) == 1

    def test_current_promo_listed_under_upcoming_is_ignored(self):
        el = _epic_element("Hades", "hades", "2025-12-11T16:00:00.000Z", "2025-12-18T16:00:00.000Z", upcoming=True)
        result = EpicFreeGamesScraper().parse_promotions(_epic_payload(el), NOW)
        assert result == {"epic:current": [], "epic:upcoming": []}

    def test_require_free_signal(self):
        paid = _epic_element("Paid", "paid", "2025-12-11T16:00:00.000Z", "2025-12-18T16:00:00.000Z",
                             discount_price=999, pay_share=50)
        free = _epic_element("Free", "free", "2025-12-11T16:00:00.000Z", "2025-12-18T16:00:00.000Z")
        scraper = EpicFreeGamesScraper(require_free_signal=True)

        result = scraper.parse_promotions(_epic_payload(paid, free), NOW)

        assert [o.title for o in result["epic:current"]] == ["Free"]

    def test_malformed_payload_gives_empty_buckets(self):
        result = EpicFreeGamesScraper().parse_promotions({"data": None}, NOW)
        assert result == {"epic:current": [], "epic:upcoming": []}


def _itad_item(title, cut, price, regular, item_id=None, currency="EUR", type_="game", mature=False, expiry=None):
    return {
        "id": item_id or f"id-{title}",
        "slug": title.lower().replace(" ", "-"),
        "title": title,
        "type": type_,
        "mature": mature,
        "deal": {
            "cut": cut,
            "price": {"amount": price, "currency": currency},
            "regular": {"amount": regular, "currency": currency},
            "url": f"https://itad.link/{title.lower().replace(' ', '')}",
            "expiry": expiry,
        },
    }


class TestItad:
    def test_filters(self):
        scraper = ItadSteamDealsScraper(api_key="k", max_final_eur=9, min_discount_pct=50)
        items = [
            _itad_item("Keep", 80, 3.99, 19.99, expiry="2025-12-20T00:00:00Z"),
            _itad_item("Low Cut", 40, 3.99, 19.99),
            _itad_item("Too Expensive", 60, 12.0, 40.0),
            _itad_item("Cheap Anyway", 90, 0.99, 5.0),
            _itad_item("Dollars", 80, 3.99, 19.99, currency="USD"),
            _itad_item("Soundtrack", 80, 3.99, 19.99, type_="dlc"),
            _itad_item("Adult", 80, 3.99, 19.99, mature=True),
            _itad_item("Expired", 80, 3.99, 19.99, expiry="2025-12-01T00:00:00Z"),
            {"title": "No deal"},
        ]

        offers = scraper.select_items(items, NOW)

        assert [o.title for o in offers] == ["Keep"]
        assert offers[0].price_facts.discount_percent == 80
        assert offers[0].window_end is not None

    def test_identical_raw_variants_are_dropped(self):
        scraper = ItadSteamDealsScraper(api_key="k")
        item = _itad_item("Doom", 80, 3.99, 19.99, item_id="x")
        seen = set()
        assert len(scraper.select_items([item], NOW, seen)) == 1
        assert scraper.select_items([item], NOW, seen) == []

    def test_strict_aaa_keywords(self):
        scraper = ItadSteamDealsScraper(api_key="k", strict_aaa=True, aaa_keywords=["tomb raider", "gta"])
        items = [
            _itad_item("Shadow of the Tomb Raider", 80, 5.99, 29.99),
            _itad_item("GTA IV", 75, 4.99, 19.99),
            _itad_item("Indie Thing", 90, 1.99, 14.99),
        ]
        titles = [o.title for o in scraper.select_items(items, NOW)]
        assert titles == ["Shadow of the Tomb Raider", "GTA IV"]

    def test_finalize_dedupes_editions_and_sorts(self):
        scraper = ItadSteamDealsScraper(api_key="k", max_results=10)
        items = [
            _itad_item("Tomb Raider", 80, 5.99, 29.99),
            _itad_item("Tomb Raider (GOTY Edition)", 85, 4.49, 29.99),
            _itad_item("Big Game", 70, 8.99, 59.99),
            _itad_item("Small Game", 90, 0.99, 9.99),
        ]
        deals = scraper.finalize(scraper.select_items(items, NOW))

        assert [o.title for o in deals] == ["Big Game", "Tomb Raider (GOTY Edition)", "Small Game"]

    def test_finalize_respects_target(self):
        scraper = ItadSteamDealsScraper(api_key="k", strict_aaa=True, aaa_target=1)
        items = [_itad_item("Alpha", 80, 1.0, 20.0), _itad_item("Beta", 80, 1.0, 30.0)]
        assert [o.title for o in scraper.finalize(scraper.select_items(items, NOW))] == ["Beta"]

    async def test_missing_key_is_a_fetch_failure(self):
        scraper = ItadSteamDealsScraper(api_key=None)
        with pytest.raises(SourceFetchError):
            await scraper.fetch()
