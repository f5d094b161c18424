import sqlite3

from conftest import NOW
from core.history import HistoryLog
from models.state import HistoryEntry


def test_append_and_read_back(history):
    history.append(HistoryEntry(ts=NOW, reason="change", fingerprint="aaa", message_id="1",
                                snapshot={"epic:current": [{"title": "Hades"}], "itad:current": "SOURCE_ERROR"}))
    history.append(HistoryEntry(ts=NOW, reason="forced", fingerprint="bbb", message_id="2", previous_message_id="1"))

    assert history.count() == 2
    latest, first = history.recent(10)
    assert latest.reason == "forced"
    assert latest.previous_message_id == "1"
    assert first.snapshot["epic:current"] == [{"title": "Hades"}]
    assert first.snapshot["itad:current"] == "SOURCE_ERROR"


def test_append_failure_is_swallowed(tmp_path, monkeypatch):
    log = HistoryLog(str(tmp_path / "history.db"))

    def broken_connect(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr("core.history.sqlite3.connect", broken_connect)
    log.append(HistoryEntry(reason="change", fingerprint="x"))
