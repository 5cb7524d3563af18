from abc import ABC, abstractmethod
from typing import Optional

from clubfee.schemas.ocr import RecognizedText


class Recognizer(ABC):
    """
    A text recognition engine: image bytes in, text with per-line confidence out.

    Implementations raise RecognitionError (or EngineUnavailableError) on
    failure and never return partial garbage in place of an error.
    """

    name: str = "recognizer"

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def recognize(self, image: bytes, timeout: Optional[float] = None) -> RecognizedText:
        ...
