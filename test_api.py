import inspect
import uuid
from unittest.mock import MagicMock, patch

from fraudshield.config import settings
from fraudshield.core.url_extractor import UrlExtractionError
from fraudshield.main import app
from fraudshield.api.routes import get_advisor_service, get_scan_service, scan_image
from fraudshield.core.ocr import OCRResult
from fraudshield.models import Advisor
from fraudshield.services.scan_service import ScanService

API = settings.API_PREFIX
SCAM_TEXT = "GUARANTEED 200% returns! WhatsApp +91-9876543210, pay via UPI now"


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["message"] == f"{settings.APP_NAME} API"


def test_scan_text(client):
    response = client.post(f"{API}/scan", json={"input_type": "text", "value": SCAM_TEXT, "lang": "en"})

    assert response.status_code == 200
    body = response.json()
    assert body["risk_band"] == "HIGH"
    assert body["risk_score"] == 93
    assert body["llm"]["boost"] == 8
    assert len(body["red_flags"]) == 4
    assert body["ocr"] is None

    detail = client.get(f"{API}/scan/{body['scan_id']}")
    assert detail.status_code == 200
    assert detail.json()["risk_score"] == 93


def test_scan_ephemeral_not_retrievable(client):
    response = client.post(f"{API}/scan", json={
        "input_type": "text", "value": SCAM_TEXT, "ephemeral": True,
    })
    assert response.status_code == 200
    assert client.get(f"{API}/scan/{response.json()['scan_id']}").status_code == 404


def test_scan_rejects_bad_input(client):
    assert client.post(f"{API}/scan", json={"input_type": "text", "value": "short"}).status_code == 400
    assert client.post(f"{API}/scan", json={
        "input_type": "text", "value": SCAM_TEXT, "lang": "de",
    }).status_code == 400
    assert client.post(f"{API}/scan", json={"input_type": "pdf", "value": SCAM_TEXT}).status_code == 422
    assert client.post(f"{API}/scan", json={"input_type": "text", "value": ""}).status_code == 422


def test_scan_url_extraction_failure(client):
    with patch("fraudshield.services.scan_service.extract_from_url",
               side_effect=UrlExtractionError("Website not found or network error")):
        response = client.post(f"{API}/scan", json={"input_type": "url", "value": "https://gone.example"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Failed to extract content from URL: Website not found or network error"


def test_scan_image_without_ocr_engine(client, png_bytes):
    response = client.post(
        f"{API}/scan/image",
        files={"image": ("chat.png", png_bytes, "image/png")},
        data={"lang": "en"},
    )
    assert response.status_code == 503


def test_scan_image_runs_as_sync_route(client, seeded_db, png_bytes):
    engine = MagicMock()
    engine.extract_text.return_value = OCRResult(text=SCAM_TEXT, confidence=90, word_count=9)
    app.dependency_overrides[get_scan_service] = lambda: ScanService(seeded_db, classifier=None, ocr_engine=engine)

    response = client.post(
        f"{API}/scan/image",
        files={"image": ("chat.png", png_bytes, "image/png")},
        data={"lang": "en"},
    )

    # Blocking OCR and database work stays off the event loop
    assert not inspect.iscoroutinefunction(scan_image)
    assert response.status_code == 200
    assert response.json()["ocr"]["word_count"] == 9
    engine.extract_text.assert_called_once_with(png_bytes, "en")


def test_scan_image_rejects_non_images(client, wav_bytes):
    for name, content, content_type in [
        ("notes.txt", b"plain text file", "text/plain"),
        ("voice.webp", wav_bytes, "image/webp"),
    ]:
        response = client.post(f"{API}/scan/image", files={"image": (name, content, content_type)})
        assert response.status_code == 400
        assert "Invalid image format" in response.json()["detail"]


def test_scan_not_found(client):
    assert client.get(f"{API}/scan/{uuid.uuid4()}").status_code == 404

    malformed = client.get(f"{API}/scan/does-not-exist")
    assert malformed.status_code == 400
    assert malformed.json()["detail"] == "Invalid scan ID format"


def test_list_scans(client):
    client.post(f"{API}/scan", json={"input_type": "text", "value": SCAM_TEXT})
    client.post(f"{API}/scan", json={"input_type": "text", "value": "Monthly statement for your savings account"})

    body = client.get(f"{API}/scans", params={"band": "HIGH"}).json()
    assert body["pagination"]["total"] == 1
    assert body["scans"][0]["risk_band"] == "HIGH"

    assert client.get(f"{API}/scans", params={"limit": 0}).status_code == 422


def test_verify_advisor_by_registration(client):
    response = client.get(f"{API}/advisors/verify", params={"registration": "INH000002345"})

    body = response.json()
    assert response.status_code == 200
    assert body["found"] is True
    assert body["matches"][0]["name"] == "Priya Singh"
    assert body["matches"][0]["match_type"] == "exact"


def test_verify_advisor_by_fuzzy_name(client):
    body = client.get(f"{API}/advisors/verify", params={"name": "Rajsh Kumar Shrma"}).json()

    assert body["count"] == 1
    assert body["matches"][0]["registration_number"] == "INH000001234"
    assert body["matches"][0]["match_type"] == "fuzzy"


def test_verify_advisor_unknown_and_missing_params(client):
    body = client.get(f"{API}/advisors/verify", params={"name": "Zzyzx Qwerty"}).json()
    assert (body["found"], body["count"], body["matches"]) == (False, 0, [])

    assert client.get(f"{API}/advisors/verify").status_code == 400


def test_list_advisors_by_status(client):
    body = client.get(f"{API}/advisors", params={"status": "active"}).json()

    assert body["pagination"]["total"] == 4
    assert all(advisor["status"] == "active" for advisor in body["advisors"])
    assert body["statistics"]["by_status"] == {"active": 4, "suspended": 1, "cancelled": 1}


def test_advisor_stats(client):
    body = client.get(f"{API}/advisors/stats/summary").json()
    assert body["overview"] == {"total": 6, "active": 4, "suspended": 1, "cancelled": 1}


def test_advisor_by_id(client, seeded_db):
    advisor = seeded_db.query(Advisor).filter(Advisor.registration_number == "INH000003456").one()

    body = client.get(f"{API}/advisors/{advisor.id}").json()
    assert body["status"] == "suspended"
    assert body["message"] == "Advisor status: suspended"
    assert body["advisor"]["name"] == "Amit Patel"

    assert client.get(f"{API}/advisors/99999").status_code == 404


def test_verify_advisor_limit_defaults_to_setting(client, monkeypatch):
    service = MagicMock()
    service.verify.return_value = {"query": {"name": "Sharma", "registration": None},
                                   "found": False, "count": 0, "matches": []}
    app.dependency_overrides[get_advisor_service] = lambda: service
    monkeypatch.setattr(settings, "ADVISOR_SEARCH_LIMIT", 3)

    assert client.get(f"{API}/advisors/verify", params={"name": "Sharma"}).status_code == 200
    service.verify.assert_called_with(name="Sharma", registration=None, limit=3)

    client.get(f"{API}/advisors/verify", params={"name": "Sharma", "limit": 7})
    service.verify.assert_called_with(name="Sharma", registration=None, limit=7)

    assert client.get(f"{API}/advisors/verify", params={"name": "Sharma", "limit": 51}).status_code == 422


def test_app_debug_follows_setting():
    assert app.debug == settings.DEBUG


def test_report_lifecycle(client):
    scan_id = client.post(f"{API}/scan", json={"input_type": "text", "value": SCAM_TEXT}).json()["scan_id"]

    created = client.post(f"{API}/reports", json={
        "type": "fraud",
        "scan_id": scan_id,
        "subject": "Fake advisor on WhatsApp",
        "description": "Asked me to pay a joining fee via UPI",
        "evidence": {"urls": ["https://scam.example", "ftp://files.example"]},
        "reporter_email": "Investor@Gmail.com",
    }, headers={"User-Agent": "fraudshield-tests"})
    assert created.status_code == 201
    body = created.json()
    assert (body["status"], body["priority"], body["estimated_response_time"]) == ("submitted", "high", "24 hours")
    report_id = body["report_id"]

    status = client.get(f"{API}/reports/{report_id}").json()
    assert status["status"] == "pending"
    assert status["status_message"] == "Your report has been received and is awaiting review."

    updated = client.put(f"{API}/reports/{report_id}/status", json={"status": "reviewing", "assigned_to": "ops"})
    assert updated.status_code == 200
    assert updated.json()["assigned_to"] == "ops"

    listing = client.get(f"{API}/reports", params={"status": "reviewing"}).json()
    assert listing["pagination"]["total"] == 1
    assert listing["reports"][0]["evidence"]["urls"] == ["https://scam.example"]
    assert listing["reports"][0]["reporter_email"] == "investor@gmail.com"
    assert "user_agent" not in listing["reports"][0]
    assert listing["statistics"]["breakdown"] == [{"status": "reviewing", "priority": "high", "count": 1}]


def test_report_validation(client):
    valid = {"type": "feedback", "subject": "Nice tool", "description": "The explanations are easy to follow"}

    assert client.post(f"{API}/reports", json={**valid, "type": "spam"}).status_code == 422
    assert client.post(f"{API}/reports", json={**valid, "subject": "Hey"}).status_code == 422
    assert client.post(f"{API}/reports", json={**valid, "description": "x" * 2001}).status_code == 422
    assert client.post(f"{API}/reports", json={**valid, "reporter_email": "not-an-email"}).status_code == 422

    bad_scan = client.post(f"{API}/reports", json={**valid, "scan_id": "scan-123"})
    assert bad_scan.status_code == 400
    assert bad_scan.json()["detail"] == "Invalid scanId format"

    assert client.post(f"{API}/reports", json=valid).json()["priority"] == "low"


def test_report_lookup_errors(client):
    assert client.get(f"{API}/reports/not-a-uuid").status_code == 400
    assert client.get(f"{API}/reports/{uuid.uuid4()}").status_code == 404

    assert client.put(f"{API}/reports/{uuid.uuid4()}/status", json={"status": "resolved"}).status_code == 404
    invalid = client.put(f"{API}/reports/{uuid.uuid4()}/status", json={"status": "closed"})
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Invalid status"
