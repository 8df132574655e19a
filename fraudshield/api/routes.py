import uuid
import logging
from fastapi import APIRouter, UploadFile, File, Form, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from fraudshield.config import settings
from fraudshield.database import get_db
from fraudshield.schemas import (
    AdvisorCredentials,
    AdvisorVerifyResponse,
    ReportCreate,
    ReportCreated,
    ReportListResponse,
    ReportStatus,
    ReportStatusUpdate,
    ReportStatusUpdated,
    ScanDetail,
    ScanListResponse,
    ScanRequest,
    ScanResponse,
)
from fraudshield.core.ocr import OCRError, OCRNotConfiguredError
from fraudshield.core.url_extractor import UrlExtractionError
from fraudshield.services.advisor_service import AdvisorService
from fraudshield.services.report_service import ReportInputError, ReportService
from fraudshield.services.scan_service import (
    ScanInputError,
    ScanService,
    default_classifier,
    default_ocr_engine,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_scan_service(db: Session = Depends(get_db)) -> ScanService:
    return ScanService(db, classifier=default_classifier(), ocr_engine=default_ocr_engine())

def get_advisor_service(db: Session = Depends(get_db)) -> AdvisorService:
    return AdvisorService(db)

def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    return ReportService(db)

# ============================================================================
# SCAN ENDPOINTS
# ============================================================================

@router.post("/scan", response_model=ScanResponse, tags=["Scans"])
def scan_content(request: ScanRequest, service: ScanService = Depends(get_scan_service)):
    """Analyze text or a web page for investment-fraud indicators"""
    try:
        if request.input_type == "url":
            return service.scan_url(request.value, request.lang, ephemeral=request.ephemeral)
        return service.scan_text(request.value, request.lang, ephemeral=request.ephemeral)
    except ScanInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UrlExtractionError as e:
        raise HTTPException(status_code=400, detail=f"Failed to extract content from URL: {e}")
    except Exception:
        logger.exception("Error in /scan")
        raise HTTPException(status_code=500, detail="Internal server error during scan")


@router.post("/scan/image", response_model=ScanResponse, tags=["Scans"])
def scan_image(
    image: UploadFile = File(...),
    lang: str = Form("en"),
    ephemeral: bool = Form(False),
    service: ScanService = Depends(get_scan_service)
):
    """Analyze an uploaded screenshot / flyer via OCR"""
    # Sync route: OCR and database calls block, so FastAPI runs this in its threadpool
    data = image.file.read()
    try:
        return service.scan_image(data, lang, filename=image.filename, ephemeral=ephemeral)
    except ScanInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OCRNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except OCRError as e:
        raise HTTPException(status_code=400, detail=f"Failed to extract text from image: {e}")
    except Exception:
        logger.exception("Error in /scan/image")
        raise HTTPException(status_code=500, detail="Internal server error during image scan")


@router.get("/scan/{scan_id}", response_model=ScanDetail, tags=["Scans"])
def get_scan(scan_id: str, service: ScanService = Depends(get_scan_service)):
    try:
        uuid.UUID(scan_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid scan ID format")

    scan = service.get_scan(scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail="Scan not found")
    return scan


@router.get("/scans", response_model=ScanListResponse, tags=["Scans"])
def list_scans(
    limit: int = Query(20, ge=1, le=100),
    page: int = Query(1, ge=1),
    band: Optional[str] = None,
    service: ScanService = Depends(get_scan_service)
):
    return service.list_scans(limit=limit, band=band, page=page)

# ============================================================================
# ADVISOR ENDPOINTS
# ============================================================================

@router.get("/advisors/verify", response_model=AdvisorVerifyResponse, tags=["Advisors"])
def verify_advisor(
    name: Optional[str] = None,
    registration: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=50),
    service: AdvisorService = Depends(get_advisor_service)
):
    """Verify an advisor by registration number or (fuzzy) name"""
    if not (name and name.strip()) and not (registration and registration.strip()):
        raise HTTPException(status_code=400, detail="Either name or registration parameter is required")
    return service.verify(name=name, registration=registration,
                          limit=limit or settings.ADVISOR_SEARCH_LIMIT)


@router.get("/advisors", tags=["Advisors"])
def list_advisors(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    firm: Optional[str] = None,
    specialization: Optional[str] = None,
    search: Optional[str] = None,
    service: AdvisorService = Depends(get_advisor_service)
):
    return service.list_advisors(page=page, limit=limit, status=status, firm=firm,
                                 specialization=specialization, search=search)


# Declared before /advisors/{advisor_id} so "stats" is not read as an id
@router.get("/advisors/stats/summary", tags=["Advisors"])
def advisor_stats(service: AdvisorService = Depends(get_advisor_service)):
    return service.summary_stats()


@router.get("/advisors/{advisor_id}", response_model=AdvisorCredentials, tags=["Advisors"])
def get_advisor(advisor_id: int, service: AdvisorService = Depends(get_advisor_service)):
    verification = service.verify_credentials(advisor_id)
    if not verification:
        raise HTTPException(status_code=404, detail="Advisor not found")
    return verification

# ============================================================================
# REPORT ENDPOINTS
# ============================================================================

@router.post("/reports", response_model=ReportCreated, status_code=201, tags=["Reports"])
def create_report(
    report: ReportCreate,
    request: Request,
    service: ReportService = Depends(get_report_service)
):
    """Report a fraud, a false positive, feedback or an advisor issue"""
    try:
        return service.create_report(
            report.type,
            report.subject,
            report.description,
            scan_id=report.scan_id,
            evidence=report.evidence.model_dump(),
            reporter_email=report.reporter_email,
            user_agent=request.headers.get("user-agent"),
        )
    except ReportInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Error in /reports")
        raise HTTPException(status_code=500, detail="Failed to submit report")


@router.get("/reports", response_model=ReportListResponse, tags=["Reports"])
def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    service: ReportService = Depends(get_report_service)
):
    return service.list_reports(page=page, limit=limit, status=status,
                                report_type=type, priority=priority)


@router.get("/reports/{report_id}", response_model=ReportStatus, tags=["Reports"])
def get_report(report_id: str, service: ReportService = Depends(get_report_service)):
    try:
        report = service.get_report(report_id)
    except ReportInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.put("/reports/{report_id}/status", response_model=ReportStatusUpdated, tags=["Reports"])
def update_report_status(
    report_id: str,
    update: ReportStatusUpdate,
    service: ReportService = Depends(get_report_service)
):
    try:
        report = service.update_status(report_id, update.status,
                                       resolution=update.resolution, assigned_to=update.assigned_to)
    except ReportInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report
