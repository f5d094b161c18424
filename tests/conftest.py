import asyncio
import os
import sys
import tempfile
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

# Keep log files out of the working tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="freegames-logs-"))
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import PublishSendError  # noqa: E402
from core.history import HistoryLog  # noqa: E402
from core.state_store import StateStore  # noqa: E402
from models.offer import Classification, Offer, PriceFacts  # noqa: E402

NOW = datetime(2025, 12, 15, 12, 0, tzinfo=timezone.utc)


def make_offer(title="Hades", url=None, source_id="epic", start=None, end=None,
               classification=Classification.CURRENT, final=None, original=None,
               discount=None, free_signal=0) -> Offer:
    facts = None
    if final is not None or original is not None or discount is not None:
        facts = PriceFacts(original_amount=original, final_amount=final, currency="EUR", discount_percent=discount)
    return Offer(
        title=title,
        url=url or f"https://store.example/{title.lower().replace(' ', '-')}",
        window_start=start,
        window_end=end,
        price_facts=facts,
        source_id=source_id,
        classification=classification,
        free_signal=free_signal,
    )


class FakeChannel:
    def __init__(self):
        self.sent: List[str] = []
        self.deleted: List[str] = []
        self.fail_send = False
        self.fail_delete = False
        self._next_id = 100

    async def send(self, content: str) -> str:
        if self.fail_send:
            raise PublishSendError("chat unreachable")
        self.sent.append(content)
        self._next_id += 1
        return str(self._next_id)

    async def delete_message(self, handle: str):
        if self.fail_delete:
            raise RuntimeError("message to delete not found")
        self.deleted.append(handle)


class FakeFetcher:
    def __init__(self, source_id: str, labels, result: Optional[Dict[str, List[Offer]]] = None,
                 error: Optional[Exception] = None, delay: float = 0, price_is_identity: bool = False):
        self.source_id = source_id
        self.bucket_labels = tuple(labels)
        self.result = result if result is not None else {}
        self.error = error
        self.delay = delay
        self.price_is_identity = price_is_identity
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def state_store(tmp_path):
    return StateStore(str(tmp_path / "state.json"))


@pytest.fixture
def history(tmp_path):
    return HistoryLog(str(tmp_path / "history.db"))


@pytest.fixture
def channel():
    return FakeChannel()
