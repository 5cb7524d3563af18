"""Primary recognizer backed by the Gemini generateContent REST endpoint."""
import base64
import logging
from io import BytesIO
from typing import Dict, List, Optional

import requests
from PIL import Image, UnidentifiedImageError

from clubfee.core.config import settings
from clubfee.core.exceptions import EngineUnavailableError, RecognitionError
from clubfee.ocr.base import Recognizer
from clubfee.schemas.ocr import RecognizedText
from clubfee.utils.text import non_blank_lines

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

EXTRACT_TEXT_PROMPT = (
    "Extract all visible text from this image exactly as printed. "
    "The text is mostly Korean with numbers. "
    "Return text only, one printed line per output line, without commentary."
)


def _mime_type(image: bytes) -> str:
    try:
        with Image.open(BytesIO(image)) as img:
            return Image.MIME.get(img.format, "image/jpeg")
    except UnidentifiedImageError:
        return "image/jpeg"


class GeminiRecognizer(Recognizer):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        line_confidence: Optional[float] = None
    ):
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self.line_confidence = (
            settings.GEMINI_LINE_CONFIDENCE if line_confidence is None else line_confidence
        )

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _generate_content(self, parts: List[Dict], timeout: Optional[float]) -> str:
        if not self.api_key:
            raise EngineUnavailableError("GEMINI_API_KEY not configured", engine=self.name)

        url = GEMINI_URL.format(model=self.model)
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": parts
                }
            ],
            "generationConfig": {
                "temperature": 0.0,
                "maxOutputTokens": 2048
            }
        }

        try:
            response = requests.post(url, params={"key": self.api_key}, json=payload, timeout=timeout)
        except requests.RequestException as e:
            raise RecognitionError(f"Gemini request failed: {e}", engine=self.name) from e

        if response.status_code != 200:
            raise RecognitionError(
                f"Gemini request failed with status {response.status_code}: {response.text[:200]}",
                engine=self.name
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RecognitionError("Gemini returned a non-JSON response", engine=self.name) from e

        try:
            candidates = data.get("candidates", [])
            if not candidates:
                return ""

            content = candidates[0].get("content", {})
            parts_out = content.get("parts", [])
            return "".join(part.get("text", "") for part in parts_out if isinstance(part, dict))
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise RecognitionError(f"Unexpected Gemini response shape: {e}", engine=self.name) from e

    def recognize(self, image: bytes, timeout: Optional[float] = None) -> RecognizedText:
        parts = [
            {"text": EXTRACT_TEXT_PROMPT},
            {
                "inlineData": {
                    "mimeType": _mime_type(image),
                    "data": base64.b64encode(image).decode("utf-8")
                }
            }
        ]
        text = self._generate_content(parts, timeout).strip()
        if not text:
            raise RecognitionError("Gemini returned no text", engine=self.name)

        lines = non_blank_lines(text)
        logger.debug("Gemini recognized %d lines", len(lines))
        # Gemini reports no per-line confidence; every line gets the configured value
        return RecognizedText(
            text=text,
            line_confidences=[self.line_confidence] * len(lines),
            engine=self.name
        )
