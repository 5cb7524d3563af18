from io import BytesIO
from unittest.mock import patch

import pytest
import pytesseract
from PIL import Image

from clubfee.core.exceptions import EngineUnavailableError, RecognitionError
from clubfee.ocr.tesseract import TesseractRecognizer


def _png() -> bytes:
    buffer = BytesIO()
    Image.new("L", (20, 20), 255).save(buffer, format="PNG")
    return buffer.getvalue()


def _data(rows):
    keys = ["page_num", "block_num", "par_num", "line_num", "conf", "text"]
    return {key: [row[i] for row in rows] for i, key in enumerate(keys)}


@pytest.fixture
def recognizer():
    return TesseractRecognizer(lang="kor+eng")


def test_words_are_grouped_into_lines(recognizer):
    data = _data([
        (1, 1, 1, 1, "-1", ""),
        (1, 1, 1, 1, "90", "홍길동"),
        (1, 1, 1, 1, "80", "180"),
        (1, 1, 1, 2, "70", "김철수"),
        (1, 1, 1, 2, "50", "150"),
        (1, 2, 1, 1, "60", "   "),
    ])

    with patch("clubfee.ocr.tesseract.pytesseract.image_to_data", return_value=data) as mock_ocr:
        result = recognizer.recognize(_png(), timeout=3)

    assert result.text == "홍길동 180\n김철수 150"
    assert result.line_confidences == [pytest.approx(0.85), pytest.approx(0.6)]
    assert result.engine == "tesseract"
    assert mock_ocr.call_args.kwargs["lang"] == "kor+eng"
    assert mock_ocr.call_args.kwargs["timeout"] == 3


def test_no_words_is_a_failure(recognizer):
    with patch("clubfee.ocr.tesseract.pytesseract.image_to_data", return_value=_data([])):
        with pytest.raises(RecognitionError):
            recognizer.recognize(_png())


def test_timeout_is_a_recognition_error(recognizer):
    with patch(
        "clubfee.ocr.tesseract.pytesseract.image_to_data",
        side_effect=RuntimeError("Tesseract process timeout")
    ):
        with pytest.raises(RecognitionError) as exc_info:
            recognizer.recognize(_png(), timeout=1)

    assert exc_info.value.engine == "tesseract"


def test_missing_binary(recognizer):
    with patch(
        "clubfee.ocr.tesseract.pytesseract.image_to_data",
        side_effect=pytesseract.TesseractNotFoundError()
    ):
        with pytest.raises(EngineUnavailableError):
            recognizer.recognize(_png())


def test_is_available_checks_binary_once(recognizer):
    with patch(
        "clubfee.ocr.tesseract.pytesseract.get_tesseract_version",
        side_effect=pytesseract.TesseractNotFoundError()
    ) as mock_version:
        assert recognizer.is_available() is False
        assert recognizer.is_available() is False

    mock_version.assert_called_once()


def test_unreadable_image(recognizer):
    with pytest.raises(RecognitionError):
        recognizer.recognize(b"garbage")
