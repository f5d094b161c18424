import asyncio
import sys

from telegram import Update
from telegram.ext import ContextTypes

from config.logger import logger
from config.settings import Settings
from core.cycle import CycleRunner
from core.debounce import Action
from core.errors import ConfigurationError, PublishSendError
from core.history import HistoryLog
from core.publisher import Publisher
from core.scheduler import CycleScheduler
from core.state_store import StateStore
from scrapers.epic import EpicFreeGamesScraper
from scrapers.itad import ItadSteamDealsScraper
from services.formatter import render_message
from services.notifier import TelegramNotifier, reply

# How long /scan waits for its cycle before answering
SCAN_REPLY_TIMEOUT = 300
# Publishes listed by /status
STATUS_HISTORY_LINES = 3


def build_fetchers(settings: Settings) -> list:
    return [
        EpicFreeGamesScraper(
            locale=settings.epic_locale,
            country=settings.epic_country,
            timeout=settings.fetch_timeout_seconds,
            require_free_signal=settings.epic_require_free_signal,
        ),
        ItadSteamDealsScraper(
            api_key=settings.itad_api_key,
            country=settings.itad_country,
            max_final_eur=settings.steam_max_final_eur,
            min_discount_pct=settings.steam_min_discount_pct,
            max_results=settings.steam_max_results,
            strict_aaa=settings.steam_strict_aaa,
            aaa_target=settings.steam_aaa_target,
            aaa_keywords=settings.steam_aaa_keywords,
            aaa_min_token_len=settings.steam_aaa_min_token_len,
            max_pages=settings.itad_max_pages,
            user_agent=settings.itad_user_agent,
            timeout=settings.fetch_timeout_seconds,
        ),
    ]


# --- Telegram handlers ---

def build_handlers(notifier: TelegramNotifier, scheduler: CycleScheduler, state_store: StateStore, history: HistoryLog) -> dict:

    async def handle_scan(update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not notifier.is_admin(update): return
        queued = " (queued behind the running cycle)" if scheduler.busy else ""
        await reply(update, f"🔎 <b>Forcing a new publish...</b>{queued}")

        future = scheduler.request_forced()
        try:
            result = await asyncio.wait_for(asyncio.shield(future), timeout=SCAN_REPLY_TIMEOUT)
        except asyncio.TimeoutError:
            await reply(update, "⏱️ Still running, check the channel in a moment.")
            return
        except PublishSendError as e:
            await reply(update, f"❌ <b>Publish failed:</b> {e}")
            return
        except Exception as e:
            await reply(update, f"❌ <b>Cycle failed:</b> {e}")
            return

        failed = f"\n⚠️ Unavailable: {', '.join(result.failed_sources)}" if result.failed_sources else ""
        if result.action is Action.PUBLISH:
            await reply(update, f"✅ Published (message {result.message_id}){failed}")
        else:
            await reply(update, f"ℹ️ Nothing published ({result.reason}){failed}")

    async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not notifier.is_admin(update): return
        state = state_store.load()
        last_change = state.last_change_at.isoformat(timespec="minutes") if state.last_change_at else "never"
        pending = f"{state.pending_count}x {state.pending_fingerprint[:12]}" if state.pending_fingerprint else "none"
        report = (
            "🤖 <b>Free Games Bot online</b>\n\n"
            f"🔄 <b>Cycles:</b> {scheduler.cycle_count}{' (running)' if scheduler.busy else ''}\n"
            f"🧾 <b>Published:</b> {state.last_published_fingerprint[:12] or '—'}\n"
            f"⏳ <b>Pending:</b> {pending}\n"
            f"🕒 <b>Last change:</b> {last_change}\n"
            f"📚 <b>History entries:</b> {history.count()}\n"
        )
        recent = history.recent(STATUS_HISTORY_LINES)
        if recent:
            report += "\n<b>Recent publishes:</b>\n" + "\n".join(
                f"• {e.ts.isoformat(timespec='minutes')} {e.reason} (message {e.message_id or '?'})" for e in recent
            )
        await reply(update, report)

    return {
        'scan': handle_scan,
        'status': handle_status,
    }


# --- Main loop ---

async def run_bot(settings: Settings):
    logger.info("🔥 Starting Free Games Bot...")

    state_store = StateStore(settings.state_path)
    history = HistoryLog(settings.history_db_path)
    notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id, settings.admin_user_id)

    runner = CycleRunner(
        fetchers=build_fetchers(settings),
        state_store=state_store,
        publisher=Publisher(notifier, state_store, history),
        render=render_message,
        confirm_threshold=settings.confirm_threshold,
        fetch_timeout=settings.fetch_timeout_seconds,
    )
    scheduler = CycleScheduler(
        runner,
        interval_seconds=settings.poll_interval_seconds,
        publish_on_boot=settings.publish_on_boot,
    )

    await notifier.start_listening(build_handlers(notifier, scheduler, state_store, history))
    try:
        await scheduler.run_forever()
    finally:
        await notifier.stop()


def main():
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        sys.exit(1)

    try:
        asyncio.run(run_bot(settings))
    except KeyboardInterrupt:
        logger.info("Bot stopped by user.")


if __name__ == "__main__":
    main()
