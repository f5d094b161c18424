import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from config.logger import logger
from core.debounce import Action, decide
from core.errors import SourceFetchError
from core.fingerprint import SOURCE_ERROR, Observation, build_fingerprint
from core.publisher import Publisher
from core.state_store import StateStore
from models.offer import Offer


class SourceFetcher(Protocol):
    source_id: str
    bucket_labels: Tuple[str, ...]
    price_is_identity: bool

    async def fetch(self) -> Dict[str, List[Offer]]: ...


@dataclass
class CycleResult:
    action: Action
    reason: str
    fingerprint: str
    message_id: Optional[str] = None
    pending_count: int = 0
    failed_sources: List[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def snapshot_of(buckets: Observation) -> Dict[str, object]:
    """JSON-friendly copy of an observation for the history log."""
    snapshot = {}
    for label in sorted(buckets):
        offers = buckets[label]
        if offers is None:
            snapshot[label] = SOURCE_ERROR
            continue
        snapshot[label] = [
            {
                "title": o.title,
                "url": o.url,
                "window_start": o.window_start.isoformat() if o.window_start else None,
                "window_end": o.window_end.isoformat() if o.window_end else None,
                "discount_percent": o.discount_percent,
                "final_amount": o.final_amount,
            }
            for o in offers
        ]
    return snapshot


class CycleRunner:
    """One fetch -> fingerprint -> decide -> (publish) pass. Not reentrant; see CycleScheduler."""

    def __init__(
        self,
        fetchers: Sequence[SourceFetcher],
        state_store: StateStore,
        publisher: Publisher,
        render: Callable[[Observation, datetime], str],
        confirm_threshold: int = 2,
        fetch_timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if confirm_threshold < 1:
            raise ValueError("confirm_threshold must be >= 1")
        self.fetchers = list(fetchers)
        self.state_store = state_store
        self.publisher = publisher
        self.render = render
        self.confirm_threshold = confirm_threshold
        self.fetch_timeout = fetch_timeout
        self.clock = clock
        self.price_identity_sources = {f.source_id for f in self.fetchers if f.price_is_identity}

    async def _fetch_one(self, fetcher: SourceFetcher) -> Optional[Dict[str, List[Offer]]]:
        try:
            return await asyncio.wait_for(fetcher.fetch(), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ [{fetcher.source_id}] Fetch timed out after {self.fetch_timeout}s")
        except SourceFetchError as e:
            logger.warning(f"⚠️ [{fetcher.source_id}] Fetch failed: {e}")
        except Exception as e:
            logger.warning(f"⚠️ [{fetcher.source_id}] Unexpected fetch error: {e}", exc_info=True)
        return None

    async def observe(self) -> Tuple[Observation, List[str]]:
        """Fetches every source concurrently. A failed source maps all its buckets to None."""
        results = await asyncio.gather(*(self._fetch_one(f) for f in self.fetchers))

        buckets: Observation = {}
        failed = []
        for fetcher, result in zip(self.fetchers, results):
            if result is None:
                failed.append(fetcher.source_id)
                for label in fetcher.bucket_labels:
                    buckets[label] = None
                continue
            for label in fetcher.bucket_labels:
                buckets[label] = list(result.get(label, []))
        return buckets, failed

    async def run_cycle(self, force: bool = False) -> CycleResult:
        state = self.state_store.load()
        now = self.clock()

        buckets, failed = await self.observe()
        fingerprint = build_fingerprint(buckets, self.price_identity_sources)
        decision = decide(fingerprint, force, state, self.confirm_threshold, now)

        counts = ", ".join(
            f"{label}={'ERR' if offers is None else len(offers)}" for label, offers in sorted(buckets.items())
        )
        logger.info(f"🔎 Observation [{counts}] fp={fingerprint[:12]} -> {decision.action.value} ({decision.reason})")

        if decision.action is Action.NONE:
            self.state_store.save(decision.next_state)
            return CycleResult(
                action=Action.NONE,
                reason=decision.reason,
                fingerprint=fingerprint,
                message_id=decision.next_state.last_message_id,
                pending_count=decision.next_state.pending_count,
                failed_sources=failed,
            )

        content = self.render(buckets, now)
        published = await self.publisher.publish(
            content, state, decision.next_state, decision.reason, snapshot_of(buckets)
        )
        return CycleResult(
            action=Action.PUBLISH,
            reason=decision.reason,
            fingerprint=fingerprint,
            message_id=published.last_message_id,
            failed_sources=failed,
        )
