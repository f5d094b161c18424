from enum import Enum
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict

PLACEHOLDER_TITLE = "Untitled"


class Classification(str, Enum):
    CURRENT = "current"
    UPCOMING = "upcoming"


class PriceFacts(BaseModel):
    # None means "unknown", never zero
    original_amount: Optional[float] = None
    final_amount: Optional[float] = None
    currency: Optional[str] = None
    discount_percent: Optional[int] = None


class Offer(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = PLACEHOLDER_TITLE
    url: str
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    price_facts: Optional[PriceFacts] = None
    source_id: str
    classification: Classification = Classification.CURRENT
    free_signal: int = 0
    product_id: Optional[str] = None

    @property
    def final_amount(self) -> Optional[float]:
        return self.price_facts.final_amount if self.price_facts else None

    @property
    def discount_percent(self) -> Optional[int]:
        return self.price_facts.discount_percent if self.price_facts else None


def bucket_label(source_id: str, classification: Classification) -> str:
    return f"{source_id}:{classification.value}"
