"""
Score sheet text parser - player names and per-game scores from OCR text.

Lines are tried against these layouts, first match wins:
  "홍길동 180 165 200 [190]"   name followed by 3 or 4 scores (row number allowed)
  "홍길동: 180, 165, 200"      colon form
  "홍길동" ... "180 165 200"    name alone on a line, scores on a later line

The last bare name is carried until a numbers-only line with valid scores
picks it up, which covers sheets where OCR splits each table row in two.
Every score must be within 0..300 or the whole row is dropped.
"""
import logging
import re
from datetime import date
from typing import List, Optional, Sequence

from clubfee.core.config import settings
from clubfee.schemas.ocr import PlayerScore, ScoreSheetResult
from clubfee.utils.text import collapse_whitespace, non_blank_lines, normalize_score_line

logger = logging.getLogger(__name__)

MAX_SCORE = 300
ALLEY_SCAN_LINES = 5
DATE_SCAN_LINES = 10

BOWLING_KEYWORDS = [
    "볼링", "bowling", "레인", "lane", "센터", "center", "클럽", "club",
    "스트라이크", "strike", "스페어", "spare", "게임", "game",
    "라운드원", "round1", "락볼링", "슈퍼볼링",
]
# Column headers and totals that look like a name to the patterns below
NON_NAME_WORDS = [
    "이름", "성명", "점수", "합계", "평균", "총점", "순위", "name", "score",
    "total", "avg", "average", "player", "rank",
]
EXCLUDE_KEYWORDS = [
    "전화", "tel", "주소", "레인번호", "lane no", "시간", "time",
    "요금", "금액", "₩", "카드", "현금", "합계", "total",
]
WON_AMOUNT = re.compile(r"\d\s*원")

NAME = r"(?<![가-힣a-zA-Z])([가-힣a-zA-Z]{2,10})"
SCORE = r"(\d{1,3})"

NAME_WITH_SCORES = re.compile(
    NAME + r"\s+" + SCORE + r"\s+" + SCORE + r"\s+" + SCORE + r"(?:\s+" + SCORE + r")?(?!\d)"
)
NAME_COLON_SCORES = re.compile(
    NAME + r"\s*[:：]\s*" + SCORE + r"\s*[,，/]\s*" + SCORE + r"\s*[,，/]\s*" + SCORE
    + r"(?:\s*[,，/]\s*" + SCORE + r")?(?!\d)"
)
NAME_ONLY = re.compile(r"^(?:\d{1,2}[.)]?\s*)?([가-힣a-zA-Z]{2,10})$")
SCORES_ONLY = re.compile(r"^(\d{1,3})\s+(\d{1,3})\s+(\d{1,3})(?:\s+(\d{1,3}))?$")

FULL_DATE = re.compile(r"(?<!\d)(\d{4})\s*[-/.년]\s*(\d{1,2})\s*[-/.월]\s*(\d{1,2})(?!\d)")
SHORT_DATE = re.compile(r"(?<!\d)(\d{2})[-/.](\d{1,2})[-/.](\d{1,2})(?!\d)")
MONTH_DAY = re.compile(r"(?<!\d)(\d{1,2})\s*월\s*(\d{1,2})\s*일")

BRACKETS = re.compile(r"[()（）\[\]【】<>《》{}]")


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def _real_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


class ScoreSheetParser:
    def __init__(self, review_threshold: Optional[float] = None):
        self.review_threshold = (
            settings.SCORE_SHEET_REVIEW_THRESHOLD if review_threshold is None else review_threshold
        )

    def parse(self, raw_text: str, confidence: float, today: Optional[date] = None) -> ScoreSheetResult:
        lines = [normalize_score_line(line) for line in non_blank_lines(raw_text or "")]
        lines = [line for line in lines if line]

        alley_name = self.extract_alley_name(lines)
        score_date = self.extract_date(lines, today or date.today())
        scores = self.extract_scores(lines)
        confidence = min(1.0, max(0.0, confidence))

        logger.debug(
            "Parsed score sheet - alley: %s, date: %s, players: %d, confidence: %.2f",
            alley_name, score_date, len(scores), confidence
        )

        return ScoreSheetResult(
            raw_text=raw_text or "",
            bowling_alley_name=alley_name,
            score_date=score_date,
            scores=scores,
            confidence=confidence,
            requires_manual_review=confidence < self.review_threshold or not scores
        )

    def extract_alley_name(self, lines: List[str]) -> Optional[str]:
        for line in lines[:ALLEY_SCAN_LINES]:
            if _contains_any(line, BOWLING_KEYWORDS):
                name = collapse_whitespace(BRACKETS.sub("", line))
                if name:
                    return name
        return None

    def extract_date(self, lines: List[str], today: date) -> Optional[date]:
        for line in lines[:DATE_SCAN_LINES]:
            for match in FULL_DATE.finditer(line):
                found = _real_date(*(int(g) for g in match.groups()))
                if found is not None:
                    return found
            for match in SHORT_DATE.finditer(line):
                year, month, day = (int(g) for g in match.groups())
                found = _real_date(2000 + year, month, day)
                if found is not None:
                    return found
            for match in MONTH_DAY.finditer(line):
                month, day = (int(g) for g in match.groups())
                found = _real_date(today.year, month, day)
                if found is not None:
                    return found
        return None

    def extract_scores(self, lines: List[str]) -> List[PlayerScore]:
        scores: List[PlayerScore] = []
        seen_names = set()
        pending_name: Optional[str] = None

        for line in lines:
            if self._is_excluded(line):
                continue

            candidate: Optional[PlayerScore] = None
            match = NAME_WITH_SCORES.search(line) or NAME_COLON_SCORES.search(line)
            if match:
                candidate = self._build_score(match.group(1), match.groups()[1:])
            else:
                name_match = NAME_ONLY.match(line)
                if name_match and self._is_valid_name(name_match.group(1)):
                    pending_name = name_match.group(1)
                    continue
                numbers_match = SCORES_ONLY.match(line)
                if numbers_match and pending_name is not None:
                    candidate = self._build_score(pending_name, numbers_match.groups())
                    if candidate is not None:
                        pending_name = None

            if candidate is None or candidate.name in seen_names:
                continue
            seen_names.add(candidate.name)
            scores.append(candidate)

        return scores

    @staticmethod
    def _is_excluded(line: str) -> bool:
        return _contains_any(line, EXCLUDE_KEYWORDS) or bool(WON_AMOUNT.search(line))

    @staticmethod
    def _is_valid_name(name: str) -> bool:
        if not 2 <= len(name) <= 10 or name.isdigit():
            return False
        lowered = name.lower()
        if lowered in NON_NAME_WORDS or lowered in BOWLING_KEYWORDS:
            return False
        # Latin keywords only match whole names so "Frank" or "Elaine" survive
        return not _contains_any(name, [k for k in BOWLING_KEYWORDS if not k.isascii()])

    def _build_score(self, name: str, raw_games: Sequence[Optional[str]]) -> Optional[PlayerScore]:
        if not self._is_valid_name(name):
            return None
        games = [int(g) if g is not None else None for g in raw_games]
        if any(g is not None and not 0 <= g <= MAX_SCORE for g in games):
            logger.debug("Dropping row for %s: score out of range %s", name, games)
            return None
        game1, game2, game3, game4 = games
        return PlayerScore(name=name, game1=game1, game2=game2, game3=game3, game4=game4)
