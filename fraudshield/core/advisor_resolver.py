"""
Advisor identity resolution.

Ranks registry entries against a free-text name through a three-tier
cascade (exact, indexed text, substring) and scores each candidate with
match_confidence(). Registry access goes through the AdvisorRegistry
interface so the resolver works the same over SQL or an in-memory snapshot.
"""

import re
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
ADVISOR_STATUSES = ('active', 'suspended', 'cancelled')

_TOKEN = re.compile(r'\w+')


@dataclass(frozen=True)
class AdvisorRecord:
    name: str
    registration_number: str
    status: str = 'active'
    firm: str = ''
    specializations: Tuple[str, ...] = ()
    registration_date: Optional[date] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    certifications: Tuple[str, ...] = ()
    address: Dict[str, Optional[str]] = field(default_factory=dict, compare=False)
    id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'registration_number': self.registration_number,
            'status': self.status,
            'firm': self.firm,
            'specializations': list(self.specializations),
            'certifications': list(self.certifications),
            'registration_date': self.registration_date.isoformat() if self.registration_date else None,
            'contact': {
                'email': self.email,
                'phone': self.phone,
                'address': dict(self.address),
            },
        }


@dataclass(frozen=True)
class AdvisorMatch:
    advisor: AdvisorRecord
    match_type: str  # exact | fuzzy
    confidence: int

    def to_dict(self) -> Dict:
        return {
            'advisor': self.advisor.to_dict(),
            'match_type': self.match_type,
            'confidence': self.confidence,
        }


class AdvisorRegistry(ABC):
    """Read-only advisor registry. Results come back in registry order."""

    @abstractmethod
    def find_exact_name(self, name: str) -> List[AdvisorRecord]:
        """Case-insensitive full-string name equality"""

    @abstractmethod
    def text_search(self, query: str) -> List[AdvisorRecord]:
        """Word-token search over name, firm and registration number"""

    @abstractmethod
    def substring_search(self, query: str) -> List[AdvisorRecord]:
        """Case-insensitive name containment in either direction"""

    @abstractmethod
    def find_by_registration(self, registration_number: str) -> Optional[AdvisorRecord]:
        """Case-insensitive exact registration-number lookup"""


def search_tokens(value: Optional[str]) -> set:
    """Lower-cased word tokens of at least two characters."""
    if not value:
        return set()
    return {token for token in _TOKEN.findall(value.lower()) if len(token) >= MIN_QUERY_LENGTH}


def text_search_hit(query_tokens: set, record: AdvisorRecord) -> bool:
    if not query_tokens:
        return False
    record_tokens = (
        search_tokens(record.name)
        | search_tokens(record.firm)
        | search_tokens(record.registration_number)
    )
    return bool(query_tokens & record_tokens)


def substring_hit(query: str, name: str) -> bool:
    query, name = query.lower(), (name or '').lower()
    return bool(name) and (query in name or name in query)


class InMemoryAdvisorRegistry(AdvisorRegistry):
    """Registry over a fixed list of records (tests, offline snapshots)."""

    def __init__(self, records: Iterable[AdvisorRecord] = ()):
        self.records: Tuple[AdvisorRecord, ...] = tuple(records)

    def find_exact_name(self, name: str) -> List[AdvisorRecord]:
        target = name.lower()
        return [r for r in self.records if r.name.lower() == target]

    def text_search(self, query: str) -> List[AdvisorRecord]:
        tokens = search_tokens(query)
        return [r for r in self.records if text_search_hit(tokens, r)]

    def substring_search(self, query: str) -> List[AdvisorRecord]:
        return [r for r in self.records if substring_hit(query, r.name)]

    def find_by_registration(self, registration_number: str) -> Optional[AdvisorRecord]:
        target = registration_number.lower()
        for record in self.records:
            if record.registration_number.lower() == target:
                return record
        return None


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein distance between two strings"""
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)
    if len(s2) == 0:
        return len(s1)

    previous_row = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def _round_half_up(value: float) -> int:
    # round() is banker's rounding; confidences round .5 upwards
    return int(value + 0.5)


def match_confidence(a: str, b: str) -> int:
    """
    Similarity of a query and a candidate name, 0-100

    - equal (case-insensitive): 100
    - containment either way: 90 * shorter / longer
    - otherwise: 80 * (1 - edit distance / longer)
    """
    a, b = (a or '').lower(), (b or '').lower()
    if a == b:
        return 100

    longest = max(len(a), len(b))
    if a in b or b in a:
        return _round_half_up(90 * min(len(a), len(b)) / longest)

    distance = levenshtein_distance(a, b)
    return _round_half_up(80 * (1 - distance / longest))


class AdvisorResolver:
    """
    Stateless per call; a registry failure is logged and treated as "no match".
    """

    def __init__(self, registry: AdvisorRegistry):
        self.registry = registry

    def find_by_name(self, name: str, limit: int = 10) -> List[AdvisorMatch]:
        query = (name or '').strip()
        if len(query) < MIN_QUERY_LENGTH or limit <= 0:
            return []

        try:
            exact = self.registry.find_exact_name(query)
            if exact:
                self._log_tier('exact', len(exact))
                return [AdvisorMatch(r, 'exact', 100) for r in exact[:limit]]

            tier = 'text'
            candidates = self.registry.text_search(query)
            if not candidates:
                tier = 'substring'
                candidates = self.registry.substring_search(query)
        except Exception as e:
            self._log_registry_failure('find_by_name', e)
            return []

        if not candidates:
            self._log_tier('none', 0)
            return []

        self._log_tier(tier, len(candidates))
        matches = [AdvisorMatch(r, 'fuzzy', match_confidence(query, r.name)) for r in candidates]
        # sorted() is stable, so equal confidences keep registry order
        matches = sorted(matches, key=lambda m: -m.confidence)
        return matches[:limit]

    def find_by_registration(self, registration_number: str) -> Optional[AdvisorMatch]:
        key = (registration_number or '').strip()
        if not key:
            return None

        try:
            record = self.registry.find_by_registration(key)
        except Exception as e:
            self._log_registry_failure('find_by_registration', e)
            return None

        self._log_tier('registration' if record else 'none', 1 if record else 0)
        return AdvisorMatch(record, 'exact', 100) if record else None

    def _log_tier(self, tier: str, hits: int):
        logger.debug("Advisor search tier: %s (%d hits)", tier, hits,
                     extra={'event': 'advisor_tier_selected', 'tier': tier, 'hits': hits})

    def _log_registry_failure(self, operation: str, error: Exception):
        logger.warning("Advisor registry unavailable during %s: %s", operation, error,
                       extra={'event': 'registry_unavailable', 'operation': operation,
                              'error': str(error)})


def deduplicate_matches(matches: Sequence[AdvisorMatch]) -> List[AdvisorMatch]:
    """
    Collapse matches for the same registry entry (by registration number).

    First-seen position is kept; a later duplicate with higher confidence
    replaces the earlier one in place.
    """
    merged: Dict[str, AdvisorMatch] = {}
    for match in matches:
        key = match.advisor.registration_number.lower()
        current = merged.get(key)
        if current is None or match.confidence > current.confidence:
            merged[key] = match
    return list(merged.values())
