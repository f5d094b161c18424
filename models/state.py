from typing import Dict, List, Optional, Union
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class PersistedState(BaseModel):
    last_published_fingerprint: str = ""
    last_message_id: Optional[str] = None
    pending_fingerprint: Optional[str] = None
    pending_count: int = 0
    last_change_at: Optional[datetime] = None

    @property
    def is_stable(self) -> bool:
        return self.pending_count == 0


class HistoryEntry(BaseModel):
    """Snapshot of one publish. Written once, never updated."""

    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: str  # "forced" | "change"
    fingerprint: str
    message_id: Optional[str] = None
    previous_message_id: Optional[str] = None
    # bucket label -> offers as plain dicts, or the error sentinel
    snapshot: Dict[str, Union[str, List[dict]]] = Field(default_factory=dict)
