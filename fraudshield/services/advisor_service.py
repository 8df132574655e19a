import logging
from collections import Counter
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from fraudshield.core.advisor_resolver import (
    ADVISOR_STATUSES,
    AdvisorMatch,
    AdvisorRecord,
    AdvisorRegistry,
    AdvisorResolver,
    search_tokens,
    substring_hit,
    text_search_hit,
)
from fraudshield.models import Advisor

logger = logging.getLogger(__name__)


def _like(value: str) -> str:
    """Contains-pattern for LIKE with wildcards in the value escaped"""
    escaped = value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def to_record(advisor: Advisor) -> AdvisorRecord:
    return AdvisorRecord(
        id=advisor.id,
        name=advisor.name,
        registration_number=advisor.registration_number,
        status=advisor.status,
        firm=advisor.firm or '',
        specializations=tuple(advisor.specializations or ()),
        certifications=tuple(advisor.certifications or ()),
        registration_date=advisor.registration_date,
        email=advisor.email,
        phone=advisor.phone,
        address={
            'street': advisor.street,
            'city': advisor.city,
            'state': advisor.state,
            'pincode': advisor.pincode,
        },
    )


class SqlAdvisorRegistry(AdvisorRegistry):
    """Registry over the advisors table, in primary-key order"""

    def __init__(self, db: Session):
        self.db = db

    def _ordered(self):
        return self.db.query(Advisor).order_by(Advisor.id)

    def find_exact_name(self, name: str) -> List[AdvisorRecord]:
        rows = self._ordered().filter(func.lower(Advisor.name) == name.lower()).all()
        return [to_record(row) for row in rows]

    def text_search(self, query: str) -> List[AdvisorRecord]:
        tokens = search_tokens(query)
        if not tokens:
            return []

        # LIKE narrows the candidates; token equality decides the hit
        clauses = []
        for token in tokens:
            pattern = _like(token)
            clauses.extend([
                Advisor.name.ilike(pattern, escape='\\'),
                Advisor.firm.ilike(pattern, escape='\\'),
                Advisor.registration_number.ilike(pattern, escape='\\'),
            ])
        rows = self._ordered().filter(or_(*clauses)).all()
        return [record for record in map(to_record, rows) if text_search_hit(tokens, record)]

    def substring_search(self, query: str) -> List[AdvisorRecord]:
        # Registry name inside the query cannot be expressed portably in SQL
        return [to_record(row) for row in self._ordered().all() if substring_hit(query, row.name)]

    def find_by_registration(self, registration_number: str) -> Optional[AdvisorRecord]:
        row = (
            self._ordered()
            .filter(func.lower(Advisor.registration_number) == registration_number.lower())
            .first()
        )
        return to_record(row) if row else None


def match_to_dict(match: AdvisorMatch) -> Dict:
    """Flat advisor match as returned by the API"""
    advisor = match.advisor
    return {
        'id': advisor.id,
        'name': advisor.name,
        'registration_number': advisor.registration_number,
        'firm': advisor.firm,
        'status': advisor.status,
        'email': advisor.email,
        'phone': advisor.phone,
        'specializations': list(advisor.specializations),
        'registration_date': advisor.registration_date.isoformat() if advisor.registration_date else None,
        'match_type': match.match_type,
        'confidence': match.confidence,
        'verified': advisor.status == 'active',
    }


class AdvisorService:
    def __init__(self, db: Session):
        self.db = db
        self.resolver = AdvisorResolver(SqlAdvisorRegistry(db))

    def verify(self, name: Optional[str] = None, registration: Optional[str] = None,
               limit: int = 10) -> Dict:
        """Registration lookup first; fuzzy name search only when it finds nothing"""
        matches: List[AdvisorMatch] = []

        if registration:
            match = self.resolver.find_by_registration(registration.strip())
            if match:
                matches = [match]

        if name and not matches:
            matches = self.resolver.find_by_name(name.strip(), limit)

        return {
            'query': {'name': name, 'registration': registration},
            'found': bool(matches),
            'count': len(matches),
            'matches': [match_to_dict(m) for m in matches],
        }

    def verify_credentials(self, advisor_id: int) -> Optional[Dict]:
        advisor = self.db.query(Advisor).filter(Advisor.id == advisor_id).first()
        if not advisor:
            return None

        record = to_record(advisor)
        message = ("Advisor is active and verified" if record.status == 'active'
                   else f"Advisor status: {record.status}")
        return {
            'verified': True,
            'status': record.status,
            'message': message,
            'advisor': record.to_dict(),
        }

    def list_advisors(self, page: int = 1, limit: int = 20, status: Optional[str] = None,
                      firm: Optional[str] = None, specialization: Optional[str] = None,
                      search: Optional[str] = None) -> Dict:
        query = self.db.query(Advisor)

        if status in ADVISOR_STATUSES:
            query = query.filter(Advisor.status == status)
        if firm:
            query = query.filter(Advisor.firm.ilike(_like(firm), escape='\\'))
        if search:
            pattern = _like(search)
            query = query.filter(or_(
                Advisor.name.ilike(pattern, escape='\\'),
                Advisor.firm.ilike(pattern, escape='\\'),
                Advisor.registration_number.ilike(pattern, escape='\\'),
            ))
        query = query.order_by(Advisor.name, Advisor.id)
        offset = (page - 1) * limit

        if specialization:
            # JSON list column; matched in Python for portability across backends
            needle = specialization.lower()
            rows = [a for a in query.all()
                    if any(needle in s.lower() for s in (a.specializations or []))]
            total = len(rows)
            rows = rows[offset:offset + limit]
        else:
            total = query.count()
            rows = query.offset(offset).limit(limit).all()

        by_status = dict(
            self.db.query(Advisor.status, func.count(Advisor.id)).group_by(Advisor.status).all()
        )

        return {
            'advisors': [to_record(row).to_dict() for row in rows],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
            'statistics': {'total': total, 'by_status': by_status},
            'filters': {
                'status': status,
                'firm': firm,
                'specialization': specialization,
                'search': search,
            },
        }

    def summary_stats(self) -> Dict:
        counts = dict(
            self.db.query(Advisor.status, func.count(Advisor.id)).group_by(Advisor.status).all()
        )
        overview = {'total': sum(counts.values())}
        for status in ADVISOR_STATUSES:
            overview[status] = counts.get(status, 0)

        top_firms = (
            self.db.query(Advisor.firm, func.count(Advisor.id).label('count'))
            .group_by(Advisor.firm)
            .order_by(func.count(Advisor.id).desc(), Advisor.firm)
            .limit(5)
            .all()
        )

        specializations = Counter()
        for (values,) in self.db.query(Advisor.specializations).order_by(Advisor.id).all():
            specializations.update(values or [])

        return {
            'overview': overview,
            'top_firms': [{'name': name, 'count': count} for name, count in top_firms],
            'top_specializations': [
                {'name': name, 'count': count} for name, count in specializations.most_common(5)
            ],
        }
