"""
Image cleanup before the secondary recognizer.

Receipts are thermal prints with faded text: fixed strong contrast plus a
sharpen pass. Score sheets vary between dark monitor photos and bright
printouts, so their contrast follows the average brightness, and portrait
shots are turned to landscape since the score table is wider than tall.
"""
import logging
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, ImageStat, UnidentifiedImageError

from clubfee.core.config import settings
from clubfee.core.exceptions import RecognitionError
from clubfee.schemas.ocr import OcrContentType

logger = logging.getLogger(__name__)

RECEIPT_CONTRAST = 1.8
RECEIPT_BRIGHTNESS = -50


def adaptive_adjustment(mean_brightness: float) -> Tuple[float, int]:
    """(contrast factor, brightness offset) for a score sheet photo."""
    if mean_brightness < 80:
        return 1.8, 40
    if mean_brightness < 120:
        return 1.5, 10
    if mean_brightness > 200:
        return 1.3, -40
    if mean_brightness > 160:
        return 1.4, -20
    return 1.5, -30


def _shift_brightness(img: Image.Image, offset: int) -> Image.Image:
    return img.point(lambda v: max(0, min(255, v + offset)))


class ImagePreprocessor:
    def __init__(self, max_dimension: Optional[int] = None, rotation_ratio: Optional[float] = None):
        self.max_dimension = max_dimension or settings.OCR_MAX_IMAGE_DIMENSION
        self.rotation_ratio = rotation_ratio or settings.SCORE_SHEET_ROTATION_RATIO

    def preprocess(self, image: bytes, content_type: OcrContentType) -> bytes:
        """Return the cleaned image as PNG bytes."""
        try:
            img = Image.open(BytesIO(image))
            img = ImageOps.exif_transpose(img)
        except (UnidentifiedImageError, OSError) as e:
            raise RecognitionError(f"Unreadable image: {e}") from e

        if max(img.size) > self.max_dimension:
            original_size = img.size
            img.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)
            logger.debug("Resized image from %s to %s", original_size, img.size)

        img = img.convert("L")

        if content_type is OcrContentType.RECEIPT:
            img = self._enhance_receipt(img)
        else:
            img = self._enhance_score_sheet(img)

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    def _enhance_receipt(self, img: Image.Image) -> Image.Image:
        img = ImageEnhance.Contrast(img).enhance(RECEIPT_CONTRAST)
        img = _shift_brightness(img, RECEIPT_BRIGHTNESS)
        return img.filter(ImageFilter.SHARPEN)

    def _enhance_score_sheet(self, img: Image.Image) -> Image.Image:
        width, height = img.size
        if height > width * self.rotation_ratio:
            img = img.rotate(-90, expand=True)
            logger.debug("Rotated portrait score sheet %sx%s", width, height)

        mean_brightness = ImageStat.Stat(img).mean[0]
        contrast, offset = adaptive_adjustment(mean_brightness)
        img = ImageEnhance.Contrast(img).enhance(contrast)
        return _shift_brightness(img, offset)
