"""
OCR collaborator.

The scan pipeline only ever sees OCRResult; images are identified by their
content (libmagic) before any engine is called.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import magic
import requests

logger = logging.getLogger(__name__)

# Detected MIME type -> image format
IMAGE_MIME_TYPES = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
}

FORMAT_MIME_TYPES = {image_format: mime for mime, image_format in IMAGE_MIME_TYPES.items()}

DEFAULT_IMAGE_FORMATS = ('jpg', 'jpeg', 'png', 'webp')


class OCRError(Exception):
    """Raised when text cannot be extracted from an image"""


class OCRNotConfiguredError(OCRError):
    """No OCR engine is available"""


@dataclass(frozen=True)
class OCRResult:
    text: str
    confidence: int
    word_count: int

    def to_dict(self) -> Dict:
        return {'text': self.text, 'confidence': self.confidence, 'word_count': self.word_count}


def detect_mime_type(data: bytes) -> str:
    """Identify content type using magic bytes"""
    try:
        return magic.Magic(mime=True).from_buffer(data)
    except magic.MagicException as e:
        logger.warning(f"File type detection failed: {e}")
        return "unknown"


def validate_image_format(data: bytes,
                          allowed: Sequence[str] = DEFAULT_IMAGE_FORMATS) -> Optional[str]:
    """Return the detected image format, or None if unknown or not allowed"""
    if not data:
        return None

    image_format = IMAGE_MIME_TYPES.get(detect_mime_type(data))
    if image_format is None:
        return None
    # "jpeg" and "jpg" name the same format
    if image_format in allowed or (image_format == 'jpg' and 'jpeg' in allowed):
        return image_format
    return None


class OCREngine(ABC):
    @abstractmethod
    def extract_text(self, image_bytes: bytes, language: str = 'en') -> OCRResult:
        """Extract text from image bytes; raises OCRError on failure"""


class HttpOCREngine(OCREngine):
    """OCR through a remote HTTP service returning JSON {text, confidence}"""

    def __init__(self, api_url: str, api_key: Optional[str] = None, timeout: int = 30):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

        self.http_session = requests.Session()
        self.http_session.headers.update({'User-Agent': 'FraudShield/1.0'})

    def extract_text(self, image_bytes: bytes, language: str = 'en') -> OCRResult:
        image_format = validate_image_format(image_bytes)
        if image_format is None:
            raise OCRError("Invalid image format. Please upload a valid image file.")

        headers = {}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'

        try:
            response = self.http_session.post(
                self.api_url,
                files={'image': (f'upload.{image_format}', image_bytes, FORMAT_MIME_TYPES[image_format])},
                data={'language': language},
                headers=headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            logger.warning("OCR request timeout")
            raise OCRError("OCR service timed out") from e
        except requests.RequestException as e:
            logger.error(f"OCR request error: {e}")
            raise OCRError("Failed to extract text from image") from e
        except ValueError as e:
            raise OCRError("OCR service returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise OCRError("OCR service returned an unexpected response")

        text = str(payload.get('text') or '').strip()
        try:
            confidence = max(0, min(100, int(round(float(payload.get('confidence', 0))))))
        except (TypeError, ValueError):
            confidence = 0

        result = OCRResult(text=text, confidence=confidence, word_count=len(text.split()))
        logger.info(f"OCR completed: {len(text)} characters, confidence {confidence}%")
        return result


def build_ocr_engine(settings) -> Optional[OCREngine]:
    if not settings.OCR_API_URL:
        return None
    return HttpOCREngine(
        api_url=settings.OCR_API_URL,
        api_key=settings.OCR_API_KEY,
        timeout=settings.OCR_TIMEOUT,
    )
