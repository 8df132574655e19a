import time
import uuid
import logging
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fraudshield.config import settings
from fraudshield.core.advisor_names import AdvisorNameExtractor
from fraudshield.core.advisor_resolver import (
    AdvisorMatch,
    AdvisorRegistry,
    AdvisorResolver,
    deduplicate_matches,
)
from fraudshield.core.explainer import ExplanationGenerator
from fraudshield.core.ml_classifier import FraudClassifier, build_classifier, classify_safely
from fraudshield.core.ocr import OCREngine, OCRNotConfiguredError, build_ocr_engine, validate_image_format
from fraudshield.core.red_flag_extractor import RedFlagExtractor
from fraudshield.core.risk_scorer import RiskScorer
from fraudshield.core.rules import RuleDefinition, load_rule_catalog
from fraudshield.core.url_extractor import extract_from_url, is_http_url
from fraudshield.models import Scan
from fraudshield.services.advisor_service import SqlAdvisorRegistry, match_to_dict

logger = logging.getLogger(__name__)

RISK_BANDS = ('LOW', 'MEDIUM', 'HIGH')


class ScanError(Exception):
    """Base class for scan request errors"""


class ScanInputError(ScanError):
    """Input rejected before analysis (type, language, length, image)"""


# ===== PROCESS-WIDE COLLABORATORS (built once) =====

@lru_cache(maxsize=1)
def default_rule_catalog():
    return load_rule_catalog(settings.RULES_PATH)


@lru_cache(maxsize=1)
def default_red_flag_extractor() -> RedFlagExtractor:
    return RedFlagExtractor(default_rule_catalog())


@lru_cache(maxsize=1)
def default_name_extractor() -> AdvisorNameExtractor:
    return AdvisorNameExtractor(settings.ADVISOR_NAME_EXCLUDED_TERMS)


@lru_cache(maxsize=1)
def default_classifier() -> FraudClassifier:
    return build_classifier(settings)


@lru_cache(maxsize=1)
def default_ocr_engine() -> Optional[OCREngine]:
    return build_ocr_engine(settings)


class ScanService:
    def __init__(self, db: Session,
                 classifier: Optional[FraudClassifier] = None,
                 ocr_engine: Optional[OCREngine] = None,
                 rules: Optional[Sequence[RuleDefinition]] = None,
                 excluded_terms: Optional[Iterable[str]] = None,
                 registry: Optional[AdvisorRegistry] = None):
        self.db = db
        self.classifier = classifier
        self.ocr_engine = ocr_engine

        # Compiled extractors are shared across requests unless overridden
        self.extractor = (RedFlagExtractor(rules) if rules is not None
                          else default_red_flag_extractor())
        self.name_extractor = (AdvisorNameExtractor(excluded_terms) if excluded_terms is not None
                               else default_name_extractor())
        self.resolver = AdvisorResolver(registry or SqlAdvisorRegistry(db))
        self.risk_scorer = RiskScorer()
        self.explainer = ExplanationGenerator()

    # ===== ENTRY POINTS =====

    def scan_text(self, text: str, language: str = 'en', ephemeral: bool = False) -> Dict:
        self._validate_language(language)
        raw_text = (text or '').strip()
        if len(raw_text) < settings.MIN_TEXT_LENGTH:
            raise ScanInputError(
                f"Text content too short (minimum {settings.MIN_TEXT_LENGTH} characters)"
            )
        return self._analyze(raw_text, language, 'text', ephemeral=ephemeral)

    def scan_url(self, url: str, language: str = 'en', ephemeral: bool = False) -> Dict:
        """Raises UrlExtractionError when the page cannot be fetched"""
        self._validate_language(language)
        url = (url or '').strip()
        if not is_http_url(url):
            raise ScanInputError("Invalid URL format")

        logger.info(f"Extracting content from URL: {url}")
        page = extract_from_url(url, timeout=settings.URL_FETCH_TIMEOUT,
                                max_redirects=settings.URL_MAX_REDIRECTS)

        raw_text = page.text.strip()
        if len(raw_text) < settings.MIN_TEXT_LENGTH:
            raise ScanInputError(
                f"Insufficient text content extracted from URL "
                f"(minimum {settings.MIN_TEXT_LENGTH} characters)"
            )
        return self._analyze(raw_text, language, 'url', source_url=url,
                             extra_meta={'page': page.meta()}, ephemeral=ephemeral)

    def scan_image(self, data: bytes, language: str = 'en', filename: Optional[str] = None,
                   ephemeral: bool = False) -> Dict:
        """Raises OCRError when text extraction fails"""
        self._validate_language(language)
        if not data:
            raise ScanInputError("Image file is required")
        if len(data) > settings.MAX_IMAGE_SIZE_MB * 1024 * 1024:
            raise ScanInputError(f"File size too large (maximum {settings.MAX_IMAGE_SIZE_MB}MB)")

        image_format = validate_image_format(data)
        if image_format is None:
            raise ScanInputError("Invalid image format. Please upload a valid image file.")
        if self.ocr_engine is None:
            raise OCRNotConfiguredError("OCR service is not configured")

        ocr = self.ocr_engine.extract_text(data, language)
        raw_text = ocr.text.strip()
        if len(raw_text) < settings.MIN_TEXT_LENGTH:
            raise ScanInputError(
                f"Insufficient text content extracted from image "
                f"(minimum {settings.MIN_TEXT_LENGTH} characters)"
            )

        image_info = {
            'original_name': filename,
            'size': len(data),
            'format': image_format,
            'confidence': ocr.confidence,
            'ocr_words': ocr.word_count,
        }
        result = self._analyze(raw_text, language, 'image',
                               extra_meta={'image_info': image_info}, ephemeral=ephemeral)
        result['ocr'] = {
            'extracted_text': raw_text,
            'confidence': ocr.confidence,
            'word_count': ocr.word_count,
        }
        result['meta']['image_size'] = len(data)
        return result

    # ===== PIPELINE =====

    def _analyze(self, raw_text: str, language: str, input_type: str,
                 source_url: Optional[str] = None, extra_meta: Optional[Dict] = None,
                 ephemeral: bool = False) -> Dict:
        start_time = time.time()
        scan_id = str(uuid.uuid4())

        # 1. Red flags + metadata
        flags, metadata = self.extractor.extract(raw_text, language)

        # 2. Classifier (failures degrade to no labels)
        classification = classify_safely(self.classifier, raw_text, language)
        labels = classification.categories

        # 3. Risk score
        boost, assessment = self.risk_scorer.score(flags, labels)

        # 4. Narrative
        explanation = self.explainer.explain(flags, assessment.score, assessment.band, labels)
        recommendations = self.explainer.recommend(flags, assessment.band, metadata)

        # 5. Advisor matches
        advisor_matches = self._match_advisors(raw_text)

        llm_used = (self.classifier is not None
                    and not classification.mock
                    and classification.error is None)
        extracted_meta = {**metadata.to_dict(), **(extra_meta or {})}
        processing_time = round((time.time() - start_time) * 1000, 2)

        if not ephemeral:
            self._save_scan(
                scan_id=scan_id,
                input_type=input_type,
                source_url=source_url,
                raw_text=raw_text,
                language=language,
                extracted_meta=extracted_meta,
                red_flags=[flag.to_dict() for flag in flags],
                llm_labels=[label.to_dict() for label in labels],
                risk_score=assessment.score,
                risk_band=assessment.band,
                breakdown=assessment.breakdown,
                explanation=explanation,
                recommendations=recommendations,
                advisor_matches=[match_to_dict(m) for m in advisor_matches],
                llm_used=llm_used,
                processing_time=processing_time,
            )

        logger.info(
            f"Scan {scan_id} complete: {assessment.band} ({assessment.score}/100) in {processing_time}ms",
            extra={'event': 'scan_complete', 'scan_id': scan_id, 'band': assessment.band,
                   'elapsed_ms': processing_time}
        )

        return {
            'scan_id': scan_id,
            'risk_score': assessment.score,
            'risk_band': assessment.band,
            'breakdown': assessment.breakdown,
            'red_flags': [flag.to_dict(evidence_limit=settings.EVIDENCE_RESPONSE_LIMIT) for flag in flags],
            'extracted_meta': extracted_meta,
            'llm': {
                'used': llm_used,
                'labels': [label.to_dict() for label in labels],
                'boost': boost,
                'error': classification.error,
            },
            'advisor_matches': [match_to_dict(m) for m in advisor_matches],
            'explanation': explanation,
            'recommendations': recommendations,
            'meta': {
                'processing_time': processing_time,
                'flag_count': len(flags),
                'advisor_count': len(advisor_matches),
                'language': language,
                'input_type': input_type,
                'ephemeral': ephemeral,
            },
        }

    def _match_advisors(self, raw_text: str) -> List[AdvisorMatch]:
        names = self.name_extractor.extract(raw_text)[:settings.MAX_ADVISOR_NAMES]
        matches: List[AdvisorMatch] = []
        for name in names:
            matches.extend(self.resolver.find_by_name(name, settings.ADVISOR_MATCHES_PER_NAME))
        # Separate name queries can rediscover the same advisor
        return deduplicate_matches(matches)

    def _validate_language(self, language: str):
        if language not in settings.SUPPORTED_LANGUAGES:
            raise ScanInputError(
                f"lang must be one of: {', '.join(settings.SUPPORTED_LANGUAGES)}"
            )

    def _save_scan(self, **fields) -> Scan:
        scan = Scan(**fields)
        try:
            self.db.add(scan)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return scan

    # ===== HISTORY =====

    def get_scan(self, scan_id: str) -> Optional[Dict]:
        scan = self.db.query(Scan).filter(Scan.scan_id == scan_id).first()
        if not scan:
            return None

        return {
            'scan_id': scan.scan_id,
            'risk_score': scan.risk_score,
            'risk_band': scan.risk_band,
            'breakdown': scan.breakdown or {},
            'red_flags': scan.red_flags or [],
            'llm_labels': scan.llm_labels or [],
            'advisor_matches': scan.advisor_matches or [],
            'extracted_meta': scan.extracted_meta or {},
            'explanation': scan.explanation,
            'recommendations': scan.recommendations or [],
            'meta': {
                'input_type': scan.input_type,
                'source_url': scan.source_url,
                'language': scan.language,
                'created_at': scan.created_at.isoformat() if scan.created_at else None,
                'processing_time': scan.processing_time,
                'llm_used': scan.llm_used,
            },
        }

    def list_scans(self, limit: int = 20, band: Optional[str] = None, page: int = 1) -> Dict:
        query = self.db.query(Scan)
        if band and band.upper() in RISK_BANDS:
            query = query.filter(Scan.risk_band == band.upper())

        total = query.count()
        scans = (
            query.order_by(desc(Scan.created_at), desc(Scan.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            'scans': [
                {
                    'scan_id': s.scan_id,
                    'risk_score': s.risk_score,
                    'risk_band': s.risk_band,
                    'input_type': s.input_type,
                    'language': s.language,
                    'created_at': s.created_at.isoformat() if s.created_at else None,
                    'processing_time': s.processing_time,
                }
                for s in scans
            ],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
        }
