"""
Single-message publish protocol: delete the live message, send the new one,
persist state, record history. Only called after a PUBLISH decision.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Union

from config.logger import logger
from core.errors import PublishSendError
from core.history import HistoryLog
from core.state_store import StateStore
from models.state import HistoryEntry, PersistedState


class Channel(Protocol):
    async def send(self, content: str) -> str: ...

    async def delete_message(self, handle: str) -> None: ...


class Publisher:
    def __init__(self, channel: Channel, state_store: StateStore, history: HistoryLog):
        self.channel = channel
        self.state_store = state_store
        self.history = history

    async def publish(
        self,
        content: str,
        state: PersistedState,
        next_state: PersistedState,
        reason: str,
        snapshot: Optional[Dict[str, Union[str, List[dict]]]] = None,
    ) -> PersistedState:
        """
        Args:
            content: Rendered notification
            state: State loaded at the start of the cycle
            next_state: State chosen by the decision engine (fingerprint, pending cleared, last_change_at)
            reason: "forced" or "change"
            snapshot: What is being published, for the history entry

        Returns:
            The persisted state, now carrying the new message id

        Raises:
            PublishSendError: the message was not sent; nothing was saved
        """
        previous_id = state.last_message_id

        # 1. Old message: any failure (already gone, no permission) is ignored
        if previous_id:
            try:
                await self.channel.delete_message(previous_id)
                logger.info(f"🗑️ Deleted previous message {previous_id}")
            except Exception as e:
                logger.warning(f"⚠️ Could not delete previous message {previous_id}: {e}")

        # 2. New message: failure leaves the stored state untouched so the next cycle retries
        try:
            message_id = await self.channel.send(content)
        except PublishSendError:
            raise
        except Exception as e:
            raise PublishSendError(str(e)) from e
        logger.info(f"📨 Sent message {message_id} ({reason})")

        # 3. State
        published = next_state.model_copy(update={"last_message_id": str(message_id)})
        save_error = None
        try:
            self.state_store.save(published)
        except OSError as e:
            save_error = e
            logger.error(f"❌ Could not save state after publish: {e}")

        # 4. History, regardless of step 3
        try:
            self.history.append(HistoryEntry(
                ts=published.last_change_at or datetime.now(timezone.utc),
                reason=reason,
                fingerprint=published.last_published_fingerprint,
                message_id=published.last_message_id,
                previous_message_id=previous_id,
                snapshot=snapshot or {},
            ))
        except Exception as e:
            logger.error(f"❌ Could not record history: {e}")

        if save_error is not None:
            raise save_error
        return published
