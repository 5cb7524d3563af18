"""
Receipt text parser - turns noisy OCR text into a ReceiptResult.

Never raises on text content: a field that cannot be found is left empty
and the result is flagged for manual review.

Extraction order:
1. Total amount from labelled lines (final payment labels before sum labels
   before generic ones), else the largest comma-grouped amount
2. Date from the first 10 lines
3. Store name from a label, else from a plausible line among the first 5
4. Line items ("name qty x price = total", then "name total")
"""
import logging
import re
from datetime import date
from typing import List, Optional

from clubfee.core.config import settings
from clubfee.schemas.ocr import ReceiptItem, ReceiptResult
from clubfee.utils.text import collapse_whitespace, non_blank_lines, normalize_receipt_text, parse_amount

logger = logging.getLogger(__name__)

MIN_TOTAL_AMOUNT = 100
MAX_TOTAL_AMOUNT = 10_000_000
MIN_FALLBACK_AMOUNT = 1000
MIN_ITEM_PRICE = 100
MAX_ITEM_PRICE = 1_000_000
MAX_ITEMS = 20
DATE_SCAN_LINES = 10
STORE_SCAN_LINES = 5
MIN_YEAR, MAX_YEAR = 2020, 2030

AMOUNT_BONUS = 0.15
FIELD_BONUS = 0.05

# Ordered by how likely the label marks the amount actually charged
TOTAL_LABELS = [
    # final payment
    "실결제금액", "결제금액", "승인금액", "실결제", "총결제", "받을금액", "청구금액", "카드결제", "신용승인",
    # sums
    "총합계", "합계금액", "합계", "총금액", "총액", "매출합계", "판매합계",
    # restaurants
    "주문금액", "이용금액", "거래금액", "내실금액", "식대",
    # bowling alleys
    "게임료", "게임비", "레인비", "레인료", "이용료", "대여료",
    # intermediate sum
    "소계",
    # generic
    "금액", "결제", "승인",
]
ENGLISH_TOTAL_LABELS = ["GRAND TOTAL", "TOTAL", "AMOUNT", "SUB TOTAL"]

# A labelled amount on a line with one of these is a discount, tax or id
TOTAL_EXCLUDE_KEYWORDS = [
    "할인", "포인트", "적립", "쿠폰", "부가세", "VAT", "면세", "과세", "봉사료",
    "잔돈", "거스름", "단가", "수량", "번호",
]

STORE_LABEL_PATTERN = re.compile(r"(?:상\s*호\s*명?|가\s*맹\s*점\s*명?|매\s*장\s*명|점\s*포\s*명)\s*[:：]?\s*(.+)")
STOPLIST = [
    "합계", "총액", "부가세", "봉사료", "할인", "포인트", "카드", "현금",
    "거래일", "거래시간", "승인번호", "회원번호", "전화", "주소",
    "사업자", "대표", "tel", "fax", "잔액", "잔돈", "영수증", "receipt",
    "결제금액", "승인금액", "받을금액", "청구금액",
]
BRACKETS = re.compile(r"[()（）\[\]【】<>《》{}]")
DIGIT_RUN = re.compile(r"\d{3,}")

FULL_DATE = re.compile(r"(?<!\d)(\d{4})[.\-/](\d{1,2})[.\-/](\d{1,2})(?!\d)")
SHORT_DATE = re.compile(r"(?<!\d)(\d{2})[.\-/](\d{1,2})[.\-/](\d{1,2})(?!\d)")
KOREAN_FULL_DATE = re.compile(r"(?<!\d)(\d{4})\s*년\s*(\d{1,2})\s*월\s*(\d{1,2})\s*일")
KOREAN_SHORT_DATE = re.compile(r"(?<!\d)(\d{2})\s*년\s*(\d{1,2})\s*월\s*(\d{1,2})\s*일")

COMMA_GROUPED = re.compile(r"(?<![\d,])\d{1,3}(?:,\d{3})+(?![\d,])")

ITEM_WITH_QUANTITY = re.compile(r"^(.+?)\s+(\d{1,3})\s*[xX×*]\s*([\d,]+)\s*=?\s*([\d,]+)\s*원?$")
ITEM_WITH_TOTAL = re.compile(r"^(.+?)\s+([\d,]+)\s*원?$")


def _spaced(label: str) -> str:
    """Let OCR put whitespace between the characters of a Korean label."""
    return r"\s*".join(re.escape(ch) for ch in label if not ch.isspace())


def _label_pattern(label: str, flags: int = 0) -> re.Pattern:
    return re.compile(_spaced(label) + r"\s*[:：]?\s*₩?\s*(\d[\d,]*)\s*원?", flags)


TOTAL_PATTERNS: List[re.Pattern] = (
    [_label_pattern(label) for label in TOTAL_LABELS]
    + [_label_pattern(label, re.IGNORECASE) for label in ENGLISH_TOTAL_LABELS]
)


def _line_at(text: str, index: int) -> str:
    start = text.rfind("\n", 0, index) + 1
    end = text.find("\n", index)
    return text[start:] if end == -1 else text[start:end]


def _contains_any(text: str, keywords: List[str]) -> bool:
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


class ReceiptParser:
    def __init__(self, review_threshold: Optional[float] = None):
        self.review_threshold = (
            settings.RECEIPT_REVIEW_THRESHOLD if review_threshold is None else review_threshold
        )

    def parse(self, raw_text: str, confidence: float) -> ReceiptResult:
        text = normalize_receipt_text(raw_text or "")
        lines = non_blank_lines(text)

        total_amount = self.extract_total_amount(text)
        receipt_date = self.extract_date(lines)
        store_name = self.extract_store_name(lines)
        items = self.extract_items(lines)

        adjusted = confidence
        if total_amount is not None:
            adjusted += AMOUNT_BONUS
        if store_name is not None:
            adjusted += FIELD_BONUS
        if receipt_date is not None:
            adjusted += FIELD_BONUS
        if items:
            adjusted += FIELD_BONUS
        adjusted = round(min(1.0, max(0.0, adjusted)), 4)

        logger.debug(
            "Parsed receipt - store: %s, amount: %s, date: %s, items: %d, confidence: %.2f",
            store_name, total_amount, receipt_date, len(items), adjusted
        )

        return ReceiptResult(
            raw_text=raw_text or "",
            store_name=store_name,
            total_amount=total_amount,
            date=receipt_date,
            items=items,
            confidence=adjusted,
            requires_manual_review=adjusted < self.review_threshold or total_amount is None
        )

    def extract_total_amount(self, text: str) -> Optional[int]:
        for pattern in TOTAL_PATTERNS:
            for match in pattern.finditer(text):
                if _contains_any(_line_at(text, match.start()), TOTAL_EXCLUDE_KEYWORDS):
                    continue
                amount = parse_amount(match.group(1))
                if amount is not None and MIN_TOTAL_AMOUNT <= amount <= MAX_TOTAL_AMOUNT:
                    return amount

        candidates = [
            amount for amount in (parse_amount(m.group(0)) for m in COMMA_GROUPED.finditer(text))
            if amount is not None and MIN_FALLBACK_AMOUNT <= amount <= MAX_TOTAL_AMOUNT
        ]
        return max(candidates) if candidates else None

    def extract_date(self, lines: List[str]) -> Optional[date]:
        for line in lines[:DATE_SCAN_LINES]:
            for pattern, century in (
                (FULL_DATE, 0),
                (SHORT_DATE, 2000),
                (KOREAN_FULL_DATE, 0),
                (KOREAN_SHORT_DATE, 2000),
            ):
                for match in pattern.finditer(line):
                    year, month, day = (int(g) for g in match.groups())
                    found = self._valid_date(year + century, month, day)
                    if found is not None:
                        return found
        return None

    @staticmethod
    def _valid_date(year: int, month: int, day: int) -> Optional[date]:
        if not (MIN_YEAR <= year <= MAX_YEAR and 1 <= month <= 12 and 1 <= day <= 31):
            return None
        try:
            return date(year, month, day)
        except ValueError:
            return None

    def extract_store_name(self, lines: List[str]) -> Optional[str]:
        for line in lines:
            match = STORE_LABEL_PATTERN.search(line)
            if match:
                name = self._clean_store_name(match.group(1))
                if len(name) >= 2:
                    return name

        for line in lines[:STORE_SCAN_LINES]:
            if not 2 <= len(line) <= 20:
                continue
            if DIGIT_RUN.search(line) or _contains_any(line, STOPLIST):
                continue
            name = self._clean_store_name(line)
            if len(name) >= 2:
                return name
        return None

    @staticmethod
    def _clean_store_name(name: str) -> str:
        return collapse_whitespace(BRACKETS.sub("", name))

    def extract_items(self, lines: List[str]) -> List[ReceiptItem]:
        items: List[ReceiptItem] = []
        for line in lines:
            if len(items) >= MAX_ITEMS:
                break
            if _contains_any(line, STOPLIST):
                continue
            item = self._parse_item_line(line)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _parse_item_line(line: str) -> Optional[ReceiptItem]:
        match = ITEM_WITH_QUANTITY.match(line)
        if match:
            name = match.group(1).strip()
            quantity = int(match.group(2))
            unit_price = parse_amount(match.group(3))
            total_price = parse_amount(match.group(4))
        else:
            match = ITEM_WITH_TOTAL.match(line)
            if not match:
                return None
            name = match.group(1).strip()
            quantity = 1
            total_price = parse_amount(match.group(2))
            unit_price = total_price

        if total_price is None or not MIN_ITEM_PRICE <= total_price <= MAX_ITEM_PRICE:
            return None
        if not 2 <= len(name) <= 30 or name.replace(" ", "").isdigit():
            return None
        return ReceiptItem(name=name, quantity=quantity, unit_price=unit_price, total_price=total_price)
