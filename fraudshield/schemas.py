from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any, Literal

# ==========================================
# 🧱 SHARED MODELS
# ==========================================

class RedFlagOut(BaseModel):
    code: str
    label: str
    weight: int
    severity: str
    evidence: List[str] = []

class ClassifierLabelOut(BaseModel):
    category: str
    confidence: int = Field(ge=0, le=100)
    explanation: str = ""

class LLMSummary(BaseModel):
    used: bool = False
    labels: List[ClassifierLabelOut] = []
    boost: int = 0
    error: Optional[str] = None

class AdvisorMatchOut(BaseModel):
    id: Optional[int] = None
    name: str
    registration_number: str
    firm: Optional[str] = None
    status: str
    email: Optional[str] = None
    phone: Optional[str] = None
    specializations: List[str] = []
    registration_date: Optional[str] = None
    match_type: str
    confidence: int
    verified: bool = False

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

# ==========================================
# 📤 RESPONSE MODELS
# ==========================================

class ScanResponse(BaseModel):
    """Result of POST /scan and POST /scan/image"""
    scan_id: str
    risk_score: int
    risk_band: str
    breakdown: Dict[str, int] = {}
    red_flags: List[RedFlagOut] = []
    extracted_meta: Dict[str, Any] = {}
    llm: LLMSummary
    advisor_matches: List[AdvisorMatchOut] = []
    explanation: str
    recommendations: List[str] = []
    ocr: Optional[Dict[str, Any]] = None
    meta: Dict[str, Any] = {}

class ScanDetail(BaseModel):
    scan_id: str
    risk_score: int
    risk_band: str
    breakdown: Dict[str, Any] = {}
    red_flags: List[RedFlagOut] = []
    llm_labels: List[ClassifierLabelOut] = []
    advisor_matches: List[Dict[str, Any]] = []
    extracted_meta: Dict[str, Any] = {}
    explanation: Optional[str] = None
    recommendations: List[str] = []
    meta: Dict[str, Any] = {}

class ScanSummary(BaseModel):
    scan_id: str
    risk_score: int
    risk_band: str
    input_type: str
    language: str
    created_at: Optional[str] = None
    processing_time: Optional[float] = None

class ScanListResponse(BaseModel):
    scans: List[ScanSummary]
    pagination: Pagination

class AdvisorVerifyResponse(BaseModel):
    query: Dict[str, Optional[str]]
    found: bool
    count: int
    matches: List[AdvisorMatchOut] = []

class AdvisorCredentials(BaseModel):
    verified: bool
    status: str
    message: str
    advisor: Dict[str, Any]

class ReportCreated(BaseModel):
    report_id: str
    status: str
    priority: str
    message: str
    estimated_response_time: str

class ReportStatus(BaseModel):
    report_id: str
    type: str
    subject: str
    status: str
    priority: str
    submitted_at: Optional[str] = None
    resolution: Optional[str] = None
    status_message: str

class ReportListResponse(BaseModel):
    reports: List[Dict[str, Any]]
    pagination: Pagination
    statistics: Dict[str, Any]

class ReportStatusUpdated(BaseModel):
    report_id: str
    status: str
    resolution: Optional[str] = None
    assigned_to: Optional[str] = None
    updated_at: Optional[str] = None

# ==========================================
# 📥 INPUT MODELS
# ==========================================

class ScanRequest(BaseModel):
    input_type: Literal["text", "url"]
    value: str = Field(min_length=1)
    lang: str = "en"
    ephemeral: bool = False

class ReportEvidence(BaseModel):
    urls: List[str] = []
    screenshots: List[str] = []
    documents: List[str] = []

class ReportCreate(BaseModel):
    type: Literal["fraud", "false_positive", "feedback", "advisor_issue"]
    scan_id: Optional[str] = None
    subject: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    evidence: ReportEvidence = ReportEvidence()
    reporter_email: Optional[EmailStr] = None

class ReportStatusUpdate(BaseModel):
    status: str
    resolution: Optional[str] = None
    assigned_to: Optional[str] = None
