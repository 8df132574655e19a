import html
import uuid
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fraudshield.core.url_extractor import is_http_url
from fraudshield.models import Report

logger = logging.getLogger(__name__)

REPORT_TYPES = ('fraud', 'false_positive', 'feedback', 'advisor_issue')
REPORT_STATUSES = ('pending', 'reviewing', 'resolved', 'dismissed')
REPORT_PRIORITIES = ('low', 'medium', 'high', 'critical')

URGENT_KEYWORDS = ('urgent', 'immediate', 'critical', 'emergency')
HIGH_PRIORITY_KEYWORDS = ('fraud', 'scam', 'stolen', 'hack', 'unauthorized')

RESPONSE_TIMES = {
    'critical': '1-2 hours',
    'high': '24 hours',
    'medium': '2-3 days',
    'low': '1 week',
}

STATUS_MESSAGES = {
    'pending': 'Your report has been received and is awaiting review.',
    'reviewing': 'Your report is currently being reviewed by our team.',
    'resolved': 'Your report has been reviewed and resolved.',
    'dismissed': 'Your report has been reviewed and dismissed.',
}

SUBJECT_LENGTH = (5, 200)
DESCRIPTION_LENGTH = (10, 2000)
MAX_EVIDENCE_URLS = 10
MAX_EVIDENCE_FILES = 5


class ReportError(Exception):
    """Base class for report request errors"""


class ReportInputError(ReportError):
    """Report rejected before it is stored"""


def is_uuid(value: Optional[str]) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def derive_priority(report_type: str, subject: str, description: str) -> str:
    """
    Urgent wording wins over everything; fraud reports and fraud wording are high;
    plain feedback is low
    """
    content = f"{subject} {description}".lower()
    if any(keyword in content for keyword in URGENT_KEYWORDS):
        return 'critical'
    if report_type == 'fraud' or any(keyword in content for keyword in HIGH_PRIORITY_KEYWORDS):
        return 'high'
    if report_type == 'feedback':
        return 'low'
    return 'medium'


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, 'Status unknown')


def _clean_evidence(evidence: Optional[Dict]) -> Dict[str, List[str]]:
    evidence = evidence or {}

    def strings(values: Optional[Iterable]) -> List[str]:
        return [str(value) for value in (values or []) if value]

    return {
        'urls': [url for url in strings(evidence.get('urls')) if is_http_url(url)][:MAX_EVIDENCE_URLS],
        'screenshots': strings(evidence.get('screenshots'))[:MAX_EVIDENCE_FILES],
        'documents': strings(evidence.get('documents'))[:MAX_EVIDENCE_FILES],
    }


def _timestamp(value) -> Optional[str]:
    return value.isoformat() if value else None


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def create_report(self, report_type: str, subject: str, description: str,
                      scan_id: Optional[str] = None, evidence: Optional[Dict] = None,
                      reporter_email: Optional[str] = None,
                      user_agent: Optional[str] = None) -> Dict:
        subject = (subject or '').strip()
        description = (description or '').strip()
        if not report_type or not subject or not description:
            raise ReportInputError("type, subject, and description are required")
        if report_type not in REPORT_TYPES:
            raise ReportInputError("Invalid report type")
        if not SUBJECT_LENGTH[0] <= len(subject) <= SUBJECT_LENGTH[1]:
            raise ReportInputError(
                f"Subject must be between {SUBJECT_LENGTH[0]} and {SUBJECT_LENGTH[1]} characters"
            )
        if not DESCRIPTION_LENGTH[0] <= len(description) <= DESCRIPTION_LENGTH[1]:
            raise ReportInputError(
                f"Description must be between {DESCRIPTION_LENGTH[0]} and {DESCRIPTION_LENGTH[1]} characters"
            )
        if scan_id and not is_uuid(scan_id):
            raise ReportInputError("Invalid scanId format")

        # Keywords are matched against what the reporter typed, before escaping
        priority = derive_priority(report_type, subject, description)
        report = Report(
            report_id=str(uuid.uuid4()),
            type=report_type,
            scan_id=scan_id or None,
            subject=html.escape(subject),
            description=html.escape(description),
            evidence=_clean_evidence(evidence),
            reporter_email=reporter_email.strip().lower() if reporter_email else None,
            user_agent=user_agent,
            priority=priority,
            status='pending',
        )
        self._save(report)

        logger.info(
            f"New report created: {report.report_id} ({report_type}, {priority} priority)",
            extra={'event': 'report_created', 'report_id': report.report_id, 'priority': priority}
        )
        return {
            'report_id': report.report_id,
            'status': 'submitted',
            'priority': priority,
            'message': "Report submitted successfully. We will review it and take appropriate action.",
            'estimated_response_time': RESPONSE_TIMES[priority],
        }

    def get_report(self, report_id: str) -> Optional[Dict]:
        report = self._find(report_id)
        if not report:
            return None
        return {
            'report_id': report.report_id,
            'type': report.type,
            'subject': report.subject,
            'status': report.status,
            'priority': report.priority,
            'submitted_at': _timestamp(report.created_at),
            'resolution': report.resolution,
            'status_message': status_message(report.status),
        }

    def list_reports(self, page: int = 1, limit: int = 20, status: Optional[str] = None,
                     report_type: Optional[str] = None, priority: Optional[str] = None) -> Dict:
        """Unknown filter values are ignored rather than rejected"""
        query = self.db.query(Report)
        if status in REPORT_STATUSES:
            query = query.filter(Report.status == status)
        if report_type in REPORT_TYPES:
            query = query.filter(Report.type == report_type)
        if priority in REPORT_PRIORITIES:
            query = query.filter(Report.priority == priority)

        total = query.count()
        reports = (
            query.order_by(desc(Report.created_at), desc(Report.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        # Statistics cover every report, not just the filtered page
        breakdown = (
            self.db.query(Report.status, Report.priority, func.count(Report.id))
            .group_by(Report.status, Report.priority)
            .order_by(Report.status, Report.priority)
            .all()
        )

        return {
            'reports': [self._summary(r) for r in reports],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
            'statistics': {
                'total': total,
                'breakdown': [
                    {'status': s, 'priority': p, 'count': count} for s, p, count in breakdown
                ],
            },
        }

    def update_status(self, report_id: str, status: str, resolution: Optional[str] = None,
                      assigned_to: Optional[str] = None) -> Optional[Dict]:
        if not is_uuid(report_id):
            raise ReportInputError("Invalid report ID format")
        if status not in REPORT_STATUSES:
            raise ReportInputError("Invalid status")

        report = self._find(report_id)
        if not report:
            return None

        report.status = status
        if resolution:
            report.resolution = html.escape(resolution)
        if assigned_to:
            report.assigned_to = html.escape(assigned_to)
        self._save(report)

        logger.info(f"Report {report_id} status updated to: {status}",
                    extra={'event': 'report_status', 'report_id': report_id, 'status': status})
        return {
            'report_id': report.report_id,
            'status': report.status,
            'resolution': report.resolution,
            'assigned_to': report.assigned_to,
            'updated_at': _timestamp(report.updated_at),
        }

    def _find(self, report_id: str) -> Optional[Report]:
        if not is_uuid(report_id):
            raise ReportInputError("Invalid report ID format")
        return self.db.query(Report).filter(Report.report_id == report_id).first()

    def _save(self, report: Report) -> Report:
        try:
            self.db.add(report)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(report)
        return report

    @staticmethod
    def _summary(report: Report) -> Dict:
        return {
            'report_id': report.report_id,
            'type': report.type,
            'scan_id': report.scan_id,
            'subject': report.subject,
            'description': report.description,
            'evidence': report.evidence or {},
            'reporter_email': report.reporter_email,
            'priority': report.priority,
            'status': report.status,
            'resolution': report.resolution,
            'assigned_to': report.assigned_to,
            'created_at': _timestamp(report.created_at),
            'updated_at': _timestamp(report.updated_at),
        }
