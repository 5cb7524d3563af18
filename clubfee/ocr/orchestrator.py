"""
OCR with fallback: Primary (remote) first when it is enabled and configured,
Secondary (local) otherwise or when Primary fails.

Each engine is tried at most once per image. Only the Secondary gets a
preprocessed image; Primary copes with raw camera photos.
"""
import logging
from datetime import date
from enum import Enum
from typing import Optional, Sequence

from clubfee.core.config import settings
from clubfee.core.exceptions import RecognitionError
from clubfee.models.member import Member
from clubfee.ocr.base import Recognizer
from clubfee.ocr.preprocessing import ImagePreprocessor
from clubfee.schemas.ocr import OcrContentType, ReceiptResult, RecognizedText, ScoreSheetResult
from clubfee.services.member_matcher import MemberNameMatcher
from clubfee.services.receipt_parser import ReceiptParser
from clubfee.services.score_sheet_parser import ScoreSheetParser

logger = logging.getLogger(__name__)


class OcrMode(str, Enum):
    HYBRID = "hybrid"
    SECONDARY_ONLY = "secondary_only"


class OcrOrchestrator:
    def __init__(
        self,
        primary: Recognizer,
        secondary: Recognizer,
        preprocessor: Optional[ImagePreprocessor] = None,
        receipt_parser: Optional[ReceiptParser] = None,
        score_sheet_parser: Optional[ScoreSheetParser] = None,
        member_matcher: Optional[MemberNameMatcher] = None,
        primary_enabled: Optional[bool] = None,
        timeout: Optional[float] = None
    ):
        self.primary = primary
        self.secondary = secondary
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.receipt_parser = receipt_parser or ReceiptParser()
        self.score_sheet_parser = score_sheet_parser or ScoreSheetParser()
        self.member_matcher = member_matcher or MemberNameMatcher()
        self.primary_enabled = settings.PRIMARY_OCR_ENABLED if primary_enabled is None else primary_enabled
        self.timeout = settings.OCR_TIMEOUT_SECONDS if timeout is None else timeout

    @property
    def mode(self) -> OcrMode:
        if self.primary_enabled and self.primary.is_available():
            return OcrMode.HYBRID
        return OcrMode.SECONDARY_ONLY

    def recognize(self, image: bytes, content_type: OcrContentType) -> RecognizedText:
        if self.mode is OcrMode.HYBRID:
            try:
                return self.primary.recognize(image, timeout=self.timeout)
            except Exception as e:
                # any Primary failure, timeouts and transport errors included, falls back
                logger.warning(
                    "%s failed on %s, falling back to %s: %s",
                    self.primary.name, content_type.value, self.secondary.name, e,
                    exc_info=True
                )

        try:
            prepared = self.preprocessor.preprocess(image, content_type)
            return self.secondary.recognize(prepared, timeout=self.timeout)
        except RecognitionError as e:
            logger.error("%s failed on %s: %s", self.secondary.name, content_type.value, e)
            if e.engine is None:
                e.engine = self.secondary.name
            raise

    def recognize_receipt(self, image: bytes) -> ReceiptResult:
        recognized = self.recognize(image, OcrContentType.RECEIPT)
        return self.receipt_parser.parse(recognized.text, recognized.confidence)

    def recognize_score_sheet(
        self,
        image: bytes,
        members: Optional[Sequence[Member]] = None,
        today: Optional[date] = None
    ) -> ScoreSheetResult:
        recognized = self.recognize(image, OcrContentType.SCORE_SHEET)
        result = self.score_sheet_parser.parse(recognized.text, recognized.confidence, today=today)
        if members:
            scores = self.member_matcher.match_scores(result.scores, members)
            result = result.model_copy(update={"scores": scores})
        return result
