from datetime import date
from typing import List, Optional
from unittest.mock import MagicMock, patch

import pytest

from clubfee.core.exceptions import EngineUnavailableError, RecognitionError
from clubfee.models.member import Member
from clubfee.ocr.base import Recognizer
from clubfee.ocr.gemini import GeminiRecognizer
from clubfee.ocr.orchestrator import OcrMode, OcrOrchestrator
from clubfee.schemas.ocr import OcrContentType, RecognizedText


class FakeRecognizer(Recognizer):
    def __init__(self, name: str, text: Optional[str] = None, available: bool = True, confidence: float = 0.9):
        self.name = name
        self.text = text
        self.available = available
        self.confidence = confidence
        self.calls: List[bytes] = []
        self.timeouts: List[Optional[float]] = []

    def is_available(self) -> bool:
        return self.available

    def recognize(self, image: bytes, timeout: Optional[float] = None) -> RecognizedText:
        self.calls.append(image)
        self.timeouts.append(timeout)
        if self.text is None:
            raise RecognitionError(f"{self.name} could not read the image", engine=self.name)
        lines = self.text.splitlines()
        return RecognizedText(text=self.text, line_confidences=[self.confidence] * len(lines), engine=self.name)


class FakePreprocessor:
    def __init__(self):
        self.calls = []

    def preprocess(self, image: bytes, content_type: OcrContentType) -> bytes:
        self.calls.append(content_type)
        return b"prepared:" + image


def _orchestrator(primary, secondary, preprocessor=None, primary_enabled=True):
    return OcrOrchestrator(
        primary,
        secondary,
        preprocessor=preprocessor or FakePreprocessor(),
        primary_enabled=primary_enabled,
        timeout=5.0
    )


def test_primary_result_is_used_when_it_succeeds():
    primary = FakeRecognizer("primary", "총액 35,000원")
    secondary = FakeRecognizer("secondary", "합계 1,000")
    preprocessor = FakePreprocessor()

    result = _orchestrator(primary, secondary, preprocessor).recognize(b"img", OcrContentType.RECEIPT)

    assert result.engine == "primary"
    assert primary.calls == [b"img"]
    assert primary.timeouts == [5.0]
    assert secondary.calls == []
    assert preprocessor.calls == []


def test_falls_back_to_preprocessed_secondary():
    primary = FakeRecognizer("primary", None)
    secondary = FakeRecognizer("secondary", "합계 1,000")
    preprocessor = FakePreprocessor()

    result = _orchestrator(primary, secondary, preprocessor).recognize(b"img", OcrContentType.SCORE_SHEET)

    assert result.engine == "secondary"
    assert len(primary.calls) == 1
    assert secondary.calls == [b"prepared:img"]
    assert preprocessor.calls == [OcrContentType.SCORE_SHEET]


def test_unavailable_primary_is_skipped():
    primary = FakeRecognizer("primary", "text", available=False)
    secondary = FakeRecognizer("secondary", "합계 1,000")
    orchestrator = _orchestrator(primary, secondary)

    orchestrator.recognize(b"img", OcrContentType.RECEIPT)

    assert orchestrator.mode is OcrMode.SECONDARY_ONLY
    assert primary.calls == []


def test_disabled_primary_is_skipped():
    primary = FakeRecognizer("primary", "text")
    secondary = FakeRecognizer("secondary", "합계 1,000")
    orchestrator = _orchestrator(primary, secondary, primary_enabled=False)

    orchestrator.recognize(b"img", OcrContentType.RECEIPT)

    assert orchestrator.mode is OcrMode.SECONDARY_ONLY
    assert primary.calls == []


def test_mode_is_hybrid_when_primary_usable():
    orchestrator = _orchestrator(FakeRecognizer("primary", "x"), FakeRecognizer("secondary", "y"))
    assert orchestrator.mode is OcrMode.HYBRID


def test_both_failing_raises_secondary_error():
    primary = FakeRecognizer("primary", None)
    secondary = FakeRecognizer("secondary", None)

    with pytest.raises(RecognitionError) as exc_info:
        _orchestrator(primary, secondary).recognize(b"img", OcrContentType.RECEIPT)

    assert exc_info.value.engine == "secondary"
    assert len(primary.calls) == 1
    assert len(secondary.calls) == 1


def test_unavailable_secondary_error_propagates():
    class MissingBinary(FakeRecognizer):
        def recognize(self, image, timeout=None):
            raise EngineUnavailableError("binary missing")

    with pytest.raises(EngineUnavailableError) as exc_info:
        _orchestrator(FakeRecognizer("primary", None), MissingBinary("secondary")).recognize(
            b"img", OcrContentType.RECEIPT
        )

    assert exc_info.value.engine == "secondary"


def test_recognize_receipt_parses_text():
    primary = FakeRecognizer("primary", "총액 35,000원", confidence=0.65)

    result = _orchestrator(primary, FakeRecognizer("secondary")).recognize_receipt(b"img")

    assert result.total_amount == 35000
    assert result.requires_manual_review is False


def test_recognize_score_sheet_matches_members():
    text = "3월 9일\n홍길동 180 165 200\n김철수A 150 160 170\n누구야 100 110 120"
    primary = FakeRecognizer("primary", text, confidence=0.95)
    members = [Member(id=1, name="홍길동"), Member(id=2, name="김철수")]

    result = _orchestrator(primary, FakeRecognizer("secondary")).recognize_score_sheet(
        b"img", members=members, today=date(2024, 5, 1)
    )

    assert result.score_date == date(2024, 3, 9)
    assert [s.matched_member_id for s in result.scores] == [1, 2, None]


def test_recognize_score_sheet_without_members_leaves_ids_empty():
    primary = FakeRecognizer("primary", "홍길동 180 165 200")

    result = _orchestrator(primary, FakeRecognizer("secondary")).recognize_score_sheet(b"img")

    assert result.scores[0].matched_member_id is None


@pytest.mark.parametrize("error", [
    TimeoutError("primary timed out"),
    ConnectionError("connection reset"),
    AttributeError("'str' object has no attribute 'get'"),
])
def test_any_primary_error_falls_back_to_secondary(error):
    primary = MagicMock(spec=Recognizer)
    primary.name = "primary"
    primary.is_available.return_value = True
    primary.recognize.side_effect = error
    secondary = FakeRecognizer("secondary", "합계 1,000")

    result = _orchestrator(primary, secondary).recognize(b"img", OcrContentType.RECEIPT)

    assert result.engine == "secondary"
    primary.recognize.assert_called_once()
    assert secondary.calls == [b"prepared:img"]


def test_unexpected_gemini_reply_falls_back_to_secondary():
    response = MagicMock(status_code=200)
    response.json.return_value = {"candidates": [{"content": "blocked"}]}
    secondary = FakeRecognizer("secondary", "합계 1,000")

    with patch("clubfee.ocr.gemini.requests.post", return_value=response):
        result = _orchestrator(GeminiRecognizer(api_key="k"), secondary).recognize(
            b"img", OcrContentType.RECEIPT
        )

    assert result.engine == "secondary"
    assert len(secondary.calls) == 1
