"""Secondary recognizer: local Tesseract through pytesseract."""
import logging
from io import BytesIO
from typing import Dict, List, Optional, Tuple

import pytesseract
from PIL import Image, UnidentifiedImageError
from pytesseract import Output

from clubfee.core.config import settings
from clubfee.core.exceptions import EngineUnavailableError, RecognitionError
from clubfee.ocr.base import Recognizer
from clubfee.schemas.ocr import RecognizedText

logger = logging.getLogger(__name__)

LineKey = Tuple[int, int, int, int]


class TesseractRecognizer(Recognizer):
    name = "tesseract"

    def __init__(self, lang: Optional[str] = None, tesseract_cmd: Optional[str] = None):
        self.lang = lang or settings.TESSERACT_LANG
        self.tesseract_cmd = tesseract_cmd or settings.TESSERACT_CMD
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        self._available: Optional[bool] = None

    def is_available(self) -> bool:
        if self._available is None:
            try:
                pytesseract.get_tesseract_version()
                self._available = True
            except pytesseract.TesseractNotFoundError:
                logger.warning("Tesseract binary not found; secondary OCR disabled")
                self._available = False
        return self._available

    def recognize(self, image: bytes, timeout: Optional[float] = None) -> RecognizedText:
        try:
            img = Image.open(BytesIO(image))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise RecognitionError(f"Unreadable image: {e}", engine=self.name) from e

        try:
            data = pytesseract.image_to_data(
                img, lang=self.lang, output_type=Output.DICT, timeout=timeout or 0
            )
        except pytesseract.TesseractNotFoundError as e:
            raise EngineUnavailableError("Tesseract binary not found", engine=self.name) from e
        except (pytesseract.TesseractError, RuntimeError) as e:
            # pytesseract signals a timeout with RuntimeError
            raise RecognitionError(f"Tesseract failed: {e}", engine=self.name) from e

        lines, confidences = self._group_lines(data)
        if not lines:
            raise RecognitionError("Tesseract found no text", engine=self.name)

        logger.debug("Tesseract recognized %d lines", len(lines))
        return RecognizedText(text="\n".join(lines), line_confidences=confidences, engine=self.name)

    @staticmethod
    def _group_lines(data: Dict[str, List]) -> Tuple[List[str], List[float]]:
        """Join words into lines; a line's confidence is the mean of its word confidences."""
        words: Dict[LineKey, List[str]] = {}
        scores: Dict[LineKey, List[float]] = {}
        for i, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            conf = float(data["conf"][i])
            if not word or conf < 0:
                continue
            key = (data["page_num"][i], data["block_num"][i], data["par_num"][i], data["line_num"][i])
            words.setdefault(key, []).append(word)
            scores.setdefault(key, []).append(conf / 100)

        lines: List[str] = []
        confidences: List[float] = []
        for key in sorted(words):
            lines.append(" ".join(words[key]))
            line_scores = scores[key]
            confidences.append(min(1.0, sum(line_scores) / len(line_scores)))
        return lines, confidences
