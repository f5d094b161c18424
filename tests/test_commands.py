from conftest import NOW
from core.scheduler import CycleScheduler
from main import build_handlers
from models.state import HistoryEntry, PersistedState
from services.notifier import TelegramNotifier


class FakeMessage:
    def __init__(self):
        self.replies = []

    async def reply_text(self, text, parse_mode=None):
        self.replies.append(text)


class FakeUpdate:
    def __init__(self):
        self.message = FakeMessage()
        self.effective_user = None


def _handlers(state_store, history):
    notifier = TelegramNotifier("token", "-100", app=object())
    scheduler = CycleScheduler(runner=None, interval_seconds=60)
    return build_handlers(notifier, scheduler, state_store, history)


async def test_status_lists_recent_publishes(state_store, history):
    state_store.save(PersistedState(last_published_fingerprint="abcdef1234567890", last_message_id="7", last_change_at=NOW))
    history.append(HistoryEntry(ts=NOW, reason="change", fingerprint="aaa", message_id="6"))
    history.append(HistoryEntry(ts=NOW, reason="forced", fingerprint="bbb", message_id="7"))

    update = FakeUpdate()
    await _handlers(state_store, history)["status"](update, None)

    report = update.message.replies[0]
    assert "History entries:</b> 2" in report
    assert "Recent publishes" in report
    assert "forced (message 7)" in report
    assert "change (message 6)" in report


async def test_status_without_history(state_store, history):
    update = FakeUpdate()
    await _handlers(state_store, history)["status"](update, None)

    report = update.message.replies[0]
    assert "Last change:</b> never" in report
    assert "Recent publishes" not in report
