"""
Debounce decision engine.

STABLE (pending_count == 0) or PENDING(fingerprint, count). A change is only
published once the same new fingerprint has been seen `confirm_threshold`
times in a row; going back to the published fingerprint cancels it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from models.state import PersistedState


class Action(str, Enum):
    NONE = "none"
    PUBLISH = "publish"


@dataclass(frozen=True)
class Decision:
    action: Action
    next_state: PersistedState
    reason: str  # "forced" | "change" | "unchanged" | "pending"


def _stable(state: PersistedState) -> PersistedState:
    return state.model_copy(update={"pending_fingerprint": None, "pending_count": 0})


def decide(
    new_fingerprint: str,
    force: bool,
    state: PersistedState,
    confirm_threshold: int = 2,
    now: Optional[datetime] = None,
) -> Decision:
    """
    Pure transition function.

    For PUBLISH, next_state is the state once the publish has landed
    (new fingerprint, pending cleared, last_change_at = now). The message id
    is left for the publisher to fill in.
    """
    if confirm_threshold < 1:
        raise ValueError("confirm_threshold must be >= 1")
    now = now or datetime.now(timezone.utc)

    if force:
        return Decision(Action.PUBLISH, _published(state, new_fingerprint, now), "forced")

    if new_fingerprint == state.last_published_fingerprint:
        return Decision(Action.NONE, _stable(state), "unchanged")

    if state.pending_fingerprint is not None and new_fingerprint == state.pending_fingerprint:
        count = state.pending_count + 1
    else:
        count = 1

    if count >= confirm_threshold:
        return Decision(Action.PUBLISH, _published(state, new_fingerprint, now), "change")

    pending = state.model_copy(update={"pending_fingerprint": new_fingerprint, "pending_count": count})
    return Decision(Action.NONE, pending, "pending")


def _published(state: PersistedState, fingerprint: str, now: datetime) -> PersistedState:
    return _stable(state).model_copy(update={
        "last_published_fingerprint": fingerprint,
        "last_change_at": now,
    })
