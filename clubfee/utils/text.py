"""Cleanup helpers shared by the OCR text parsers."""
import re
from typing import List, Optional

_DIGIT_LOOKALIKES = {"O": "0", "o": "0", "l": "1", "I": "1"}
_LOOKALIKE_BETWEEN_DIGITS = re.compile(r"(?<=\d)[OolI](?=\d)")
_DOT_AS_THOUSANDS = re.compile(r"(?<=\d)\.(?=\d{3}(?!\d))")
_VERTICAL_BARS = re.compile(r"[|｜ㅣ]")
_WHITESPACE = re.compile(r"\s+")


def repair_digits(text: str) -> str:
    """Fix letters read in place of digits, only where digits surround them."""
    return _LOOKALIKE_BETWEEN_DIGITS.sub(lambda m: _DIGIT_LOOKALIKES[m.group(0)], text)


def normalize_receipt_text(text: str) -> str:
    text = repair_digits(text)
    # "35.000" on a thermal receipt is 35,000, not a decimal
    text = _DOT_AS_THOUSANDS.sub(",", text)
    return _VERTICAL_BARS.sub("", text)


def normalize_score_line(line: str) -> str:
    line = repair_digits(line)
    line = _VERTICAL_BARS.sub("", line)
    return line.strip()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def non_blank_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_amount(raw: str) -> Optional[int]:
    digits = raw.replace(",", "").replace(" ", "")
    if not digits.isdigit():
        return None
    return int(digits)
