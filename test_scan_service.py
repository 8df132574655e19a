from unittest.mock import MagicMock, patch

import pytest

from fraudshield.core.ml_classifier import FraudClassifier, MockFraudClassifier
from fraudshield.core.ocr import OCRError, OCRNotConfiguredError, OCRResult
from fraudshield.core.url_extractor import UrlExtraction, UrlExtractionError
from fraudshield.models import Scan
from fraudshield.services.scan_service import (
    ScanInputError,
    ScanService,
    default_name_extractor,
    default_red_flag_extractor,
)

SCAM_TEXT = "GUARANTEED 200% returns! WhatsApp +91-9876543210, pay via UPI now"


class FailingClassifier(FraudClassifier):
    provider = "llm"

    def classify(self, text, language="en"):
        raise RuntimeError("quota exceeded")


@pytest.fixture
def service(seeded_db):
    return ScanService(seeded_db, classifier=MockFraudClassifier())


def test_scan_text_scores_and_persists(service, seeded_db):
    result = service.scan_text(SCAM_TEXT, "en")

    assert [flag["code"] for flag in result["red_flags"]] == [
        "GUARANTEED_RETURNS", "UNREALISTIC_RETURNS", "UNOFFICIAL_CHANNELS", "SUSPICIOUS_PAYMENT",
    ]
    assert result["breakdown"]["base_score"] == 85
    # mock classifier sees "guaranteed": ponzi_scheme at 75 adds 8
    assert result["llm"]["boost"] == 8
    assert result["llm"]["used"] is False
    assert result["risk_score"] == 93
    assert result["risk_band"] == "HIGH"
    assert result["explanation"].startswith("Risk Assessment: HIGH (Score: 93/100)")
    assert "⚠️ No legitimate investment guarantees returns" in result["recommendations"]
    assert "+91-9876543210" in result["extracted_meta"]["phones"]
    assert result["meta"]["input_type"] == "text"
    assert result["meta"]["flag_count"] == 4

    stored = seeded_db.query(Scan).filter(Scan.scan_id == result["scan_id"]).one()
    assert stored.risk_score == 93
    assert stored.risk_band == "HIGH"
    assert stored.raw_text == SCAM_TEXT


def test_get_scan_returns_stored_report(service):
    result = service.scan_text(SCAM_TEXT, "en")
    report = service.get_scan(result["scan_id"])

    assert report["risk_score"] == result["risk_score"]
    assert report["explanation"] == result["explanation"]
    assert report["meta"]["input_type"] == "text"
    assert [label["category"] for label in report["llm_labels"]] == ["ponzi_scheme"]
    assert service.get_scan("missing") is None


def test_ephemeral_scan_is_not_stored(service, seeded_db):
    result = service.scan_text(SCAM_TEXT, "en", ephemeral=True)

    assert result["meta"]["ephemeral"] is True
    assert seeded_db.query(Scan).count() == 0
    assert service.get_scan(result["scan_id"]) is None


def test_evidence_trimmed_in_response_only(service, seeded_db):
    result = service.scan_text("Send via upi, UPI, Paytm, PhonePe or bitcoin", "en")

    payment = result["red_flags"][0]
    assert payment["code"] == "SUSPICIOUS_PAYMENT"
    assert payment["evidence"] == ["upi", "UPI", "Paytm"]

    stored = seeded_db.query(Scan).filter(Scan.scan_id == result["scan_id"]).one()
    assert len(stored.red_flags[0]["evidence"]) == 5


@pytest.mark.parametrize("text", ["", "   ", "too short"])
def test_short_text_rejected(service, text):
    with pytest.raises(ScanInputError):
        service.scan_text(text, "en")


def test_unsupported_language_rejected(service):
    with pytest.raises(ScanInputError, match="lang must be one of"):
        service.scan_text(SCAM_TEXT, "fr")


def test_classifier_failure_scores_from_flags_only(seeded_db):
    result = ScanService(seeded_db, classifier=FailingClassifier()).scan_text(SCAM_TEXT, "en")

    assert result["risk_score"] == 85
    assert result["llm"] == {"used": False, "labels": [], "boost": 0, "error": "quota exceeded"}


def test_no_classifier(seeded_db):
    result = ScanService(seeded_db, classifier=None).scan_text(SCAM_TEXT, "en")
    assert result["llm"]["used"] is False
    assert result["llm"]["error"] is None
    assert result["risk_score"] == 85


def test_advisor_matches_deduplicated_across_names(service):
    result = service.scan_text(
        "Message from advisor Rajesh Kumar Sharma. Call Sharma sir at 9876543210", "en"
    )

    assert len(result["advisor_matches"]) == 1
    match = result["advisor_matches"][0]
    assert match["registration_number"] == "INH000001234"
    assert (match["match_type"], match["confidence"]) == ("exact", 100)
    assert match["verified"] is True
    assert result["meta"]["advisor_count"] == 1


def test_suspended_advisor_not_verified(service):
    result = service.scan_text("Trade tips from expert Amit Patel daily", "en")
    assert [(m["name"], m["status"], m["verified"]) for m in result["advisor_matches"]] == [
        ("Amit Patel", "suspended", False),
    ]


def test_registry_failure_does_not_fail_scan(seeded_db):
    registry = MagicMock()
    registry.find_exact_name.side_effect = RuntimeError("db down")
    service = ScanService(seeded_db, classifier=None, registry=registry)

    result = service.scan_text("Message from advisor Priya Singh about returns", "en")
    assert result["advisor_matches"] == []


def test_scan_url(service, seeded_db):
    page = UrlExtraction(
        url="https://scam.example",
        text="Double your money with our Telegram group. Registration fee via UPI.",
        title="Scam",
        description="",
        status_code=200,
        content_length=68,
        html_length=300,
    )
    with patch("fraudshield.services.scan_service.extract_from_url", return_value=page) as fetch:
        result = service.scan_url("https://scam.example", "en")

    fetch.assert_called_once()
    assert result["meta"]["input_type"] == "url"
    assert result["extracted_meta"]["page"]["title"] == "Scam"
    assert "UNREALISTIC_RETURNS" in [flag["code"] for flag in result["red_flags"]]

    stored = seeded_db.query(Scan).filter(Scan.scan_id == result["scan_id"]).one()
    assert stored.source_url == "https://scam.example"


def test_scan_url_errors(service):
    with pytest.raises(ScanInputError):
        service.scan_url("not-a-url", "en")

    with patch("fraudshield.services.scan_service.extract_from_url",
               side_effect=UrlExtractionError("Too many redirects")):
        with pytest.raises(UrlExtractionError):
            service.scan_url("https://loop.example", "en")


def test_scan_url_with_too_little_text(service):
    page = UrlExtraction("https://empty.example", "Hi", "Untitled", "", 200, 2, 40)
    with patch("fraudshield.services.scan_service.extract_from_url", return_value=page):
        with pytest.raises(ScanInputError, match="Insufficient text"):
            service.scan_url("https://empty.example", "en")


def test_scan_image(seeded_db, png_bytes):
    engine = MagicMock()
    engine.extract_text.return_value = OCRResult(text=SCAM_TEXT, confidence=91, word_count=9)
    service = ScanService(seeded_db, classifier=None, ocr_engine=engine)

    result = service.scan_image(png_bytes, "hi", filename="chat.png")

    engine.extract_text.assert_called_once_with(png_bytes, "hi")
    assert result["ocr"] == {"extracted_text": SCAM_TEXT, "confidence": 91, "word_count": 9}
    assert result["meta"]["image_size"] == len(png_bytes)
    assert result["meta"]["input_type"] == "image"
    assert result["extracted_meta"]["image_info"]["format"] == "png"
    assert result["risk_band"] == "HIGH"


def test_scan_image_rejections(seeded_db, png_bytes, wav_bytes):
    engine = MagicMock()
    service = ScanService(seeded_db, classifier=None, ocr_engine=engine)

    with pytest.raises(ScanInputError, match="required"):
        service.scan_image(b"", "en")
    with pytest.raises(ScanInputError, match="Invalid image format"):
        service.scan_image(b"GIF89a....", "en")
    with pytest.raises(ScanInputError, match="Invalid image format"):
        service.scan_image(wav_bytes, "en")
    engine.extract_text.assert_not_called()

    with pytest.raises(OCRNotConfiguredError):
        ScanService(seeded_db, classifier=None, ocr_engine=None).scan_image(png_bytes, "en")


def test_scan_image_ocr_failures(seeded_db, png_bytes):
    engine = MagicMock()
    engine.extract_text.side_effect = OCRError("OCR service timed out")
    with pytest.raises(OCRError):
        ScanService(seeded_db, classifier=None, ocr_engine=engine).scan_image(png_bytes, "en")

    engine.extract_text.side_effect = None
    engine.extract_text.return_value = OCRResult(text="", confidence=0, word_count=0)
    with pytest.raises(ScanInputError, match="Insufficient text"):
        ScanService(seeded_db, classifier=None, ocr_engine=engine).scan_image(png_bytes, "en")


def test_list_scans_filters_by_band(service):
    service.scan_text(SCAM_TEXT, "en")
    service.scan_text("Quarterly results were published on the exchange website", "en")

    everything = service.list_scans()
    assert everything["pagination"]["total"] == 2

    high = service.list_scans(band="high")
    assert [scan["risk_band"] for scan in high["scans"]] == ["HIGH"]

    low = service.list_scans(band="LOW", limit=1)
    assert low["pagination"] == {"page": 1, "limit": 1, "total": 1, "pages": 1}


def test_default_extractors_shared_between_services(seeded_db):
    first = ScanService(seeded_db, classifier=None)
    second = ScanService(seeded_db, classifier=None)

    assert first.extractor is second.extractor is default_red_flag_extractor()
    assert first.name_extractor is second.name_extractor is default_name_extractor()

    custom = ScanService(seeded_db, classifier=None, excluded_terms=["Sharma"])
    assert custom.name_extractor is not first.name_extractor
    assert custom.extractor is first.extractor
