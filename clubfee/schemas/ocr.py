import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OcrContentType(str, Enum):
    RECEIPT = "receipt"
    SCORE_SHEET = "score_sheet"


class RecognizedText(BaseModel):
    """Raw engine output: text plus one confidence per recognized line."""
    model_config = ConfigDict(frozen=True)

    text: str
    line_confidences: List[float] = []
    engine: str = ""

    @property
    def confidence(self) -> float:
        if not self.line_confidences:
            return 0.0
        return sum(self.line_confidences) / len(self.line_confidences)


class ReceiptItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int = 1
    unit_price: Optional[int] = None
    total_price: Optional[int] = None


class ReceiptResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_text: str
    store_name: Optional[str] = None
    total_amount: Optional[int] = None
    date: Optional[dt.date] = None
    items: List[ReceiptItem] = []
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    requires_manual_review: bool = True

    @property
    def is_empty(self) -> bool:
        return self.total_amount is None and self.store_name is None and not self.items

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= 0.85

    @property
    def confidence_percent(self) -> int:
        return max(0, min(100, int(self.confidence * 100)))


class PlayerScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    game1: Optional[int] = Field(default=None, ge=0, le=300)
    game2: Optional[int] = Field(default=None, ge=0, le=300)
    game3: Optional[int] = Field(default=None, ge=0, le=300)
    game4: Optional[int] = Field(default=None, ge=0, le=300)
    matched_member_id: Optional[int] = None

    @property
    def games(self) -> List[int]:
        return [g for g in (self.game1, self.game2, self.game3, self.game4) if g is not None]

    @property
    def game_count(self) -> int:
        return len(self.games)

    @property
    def total(self) -> int:
        return sum(self.games)

    @property
    def average(self) -> float:
        return self.total / self.game_count if self.game_count else 0.0

    def with_matched_member(self, member_id: Optional[int]) -> "PlayerScore":
        return self.model_copy(update={"matched_member_id": member_id})


class ScoreSheetResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_text: str
    bowling_alley_name: Optional[str] = None
    score_date: Optional[dt.date] = None
    scores: List[PlayerScore] = []
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    requires_manual_review: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.scores

    @property
    def total_games_recognized(self) -> int:
        return sum(score.game_count for score in self.scores)

    @property
    def confidence_percent(self) -> int:
        return max(0, min(100, int(self.confidence * 100)))
