import html
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from core.fingerprint import Observation
from models.offer import Offer

TELEGRAM_MAX_LENGTH = 4096
STEAM_MAX_LINES = 10
DISPLAY_TZ = ZoneInfo("Europe/Rome")
UNAVAILABLE = "⚠️ <i>source unavailable (will retry later)</i>"

SECTIONS = {
    "epic:current": ("🎁 <b>Epic Games: free now</b>", "No free games right now 👀"),
    "epic:upcoming": ("🔜 <b>Epic Games: coming next</b>", "Epic hasn't announced the next ones yet 🎁"),
    "itad:current": ("💸 <b>Steam deals</b>", "—"),
}
SECTION_ORDER = ["epic:current", "epic:upcoming", "itad:current"]


def fmt_date(dt: Optional[datetime]) -> str:
    if dt is None:
        return "?"
    return dt.astimezone(DISPLAY_TZ).strftime("%d/%m %H:%M")


def fmt_euro(amount: Optional[float]) -> Optional[str]:
    if amount is None:
        return None
    return f"{amount:.2f}".replace(".", ",") + "€"


def _link(offer: Offer) -> str:
    return f"<a href='{html.escape(offer.url, quote=True)}'><b>{html.escape(offer.title)}</b></a>"


def epic_current_lines(offers: List[Offer]) -> str:
    return "\n".join(f"• {_link(o)} — until <b>{fmt_date(o.window_end)}</b>" for o in offers)


def epic_upcoming_lines(offers: List[Offer]) -> str:
    return "\n".join(f"• {_link(o)} — from <b>{fmt_date(o.window_start)}</b>" for o in offers)


def steam_deal_lines(offers: List[Offer]) -> str:
    lines = []
    for o in offers[:STEAM_MAX_LINES]:
        facts = o.price_facts
        original = fmt_euro(facts.original_amount) if facts else None
        final = fmt_euro(facts.final_amount) if facts else None
        discount = o.discount_percent if o.discount_percent is not None else "?"

        if original and final:
            price_part = f"💸 <s>{original}</s> → <b>{final}</b> (-{discount}%)"
        else:
            price_part = f"(-{discount}%)"

        end_part = f"\n⏳ Ends: {fmt_date(o.window_end)}" if o.window_end else ""
        lines.append(f"• {_link(o)}\n{price_part}{end_part}")

    extra = f"\n\n(+{len(offers) - STEAM_MAX_LINES} more)" if len(offers) > STEAM_MAX_LINES else ""
    return "\n\n".join(lines) + extra


RENDERERS = {
    "epic:current": epic_current_lines,
    "epic:upcoming": epic_upcoming_lines,
    "itad:current": steam_deal_lines,
}


def _generic_lines(offers: List[Offer]) -> str:
    return "\n".join(f"• {_link(o)}" for o in offers)


def render_message(buckets: Observation, now: Optional[datetime] = None) -> str:
    """
    Telegram HTML for one observation. A failed source keeps its section
    with a visible placeholder instead of disappearing.
    """
    now = now or datetime.now(timezone.utc)
    labels = [label for label in SECTION_ORDER if label in buckets]
    labels += sorted(label for label in buckets if label not in SECTION_ORDER)

    sections = []
    for label in labels:
        title, empty_text = SECTIONS.get(label, (f"<b>{html.escape(label)}</b>", "—"))
        offers = buckets[label]
        if offers is None:
            body = UNAVAILABLE
        elif not offers:
            body = empty_text
        else:
            body = RENDERERS.get(label, _generic_lines)(offers)
        sections.append(f"{title}\n{body}")

    footer = f"<i>Updated {fmt_date(now)}</i>"
    message = "\n\n".join(sections + [footer])
    return truncate(message)


def truncate(message: str, limit: int = TELEGRAM_MAX_LENGTH) -> str:
    if len(message) <= limit:
        return message
    # Cut on a line boundary so no HTML tag is left open
    cut = message[:limit - 2].rsplit("\n", 1)[0]
    return cut + "\n…"
