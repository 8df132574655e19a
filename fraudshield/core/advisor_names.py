"""
Heuristic advisor-name extraction.

Pulls capitalised name spans that follow or precede contextual cues
("advisor X", "contact X Y", "X sir"). This is a noisy heuristic with no
precision guarantee; callers treat the output as search candidates only.
"""

import re
import logging
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_TERMS = (
    'Investment',
    'Trading',
    'Stock',
    'Market',
    'Financial',
    'Money',
)

_NAME = r'[A-Z][a-z]+'

CUE_PATTERNS = (
    # "advisor Rajesh Sharma", "analyst Priya"
    re.compile(rf'\b(?i:advisor|adviser|consultant|expert|analyst)\s+({_NAME}(?:[ \t]+{_NAME})*)'),
    # "contact Amit Patel", "by Deepika Gupta"
    re.compile(rf'\b(?i:by|from|contact)\s+({_NAME}(?:[ \t]+{_NAME}){{1,2}})'),
    # "Sharma sir", "Priya madam", "Gupta ji"
    re.compile(rf'({_NAME}(?:[ \t]+{_NAME})*)[ \t]+(?i:sir|madam|ji)\b'),
)


class AdvisorNameExtractor:
    def __init__(self,
                 excluded_terms: Optional[Iterable[str]] = None,
                 min_length: int = 4,
                 max_length: int = 49):
        terms = list(DEFAULT_EXCLUDED_TERMS)
        for term in excluded_terms or ():
            if term and term.strip() and term.strip() not in terms:
                terms.append(term.strip())
        self.excluded_terms = tuple(terms)
        self._excluded = [
            re.compile(rf'\b{re.escape(term)}\b', re.IGNORECASE) for term in self.excluded_terms
        ]
        self.min_length = min_length
        self.max_length = max_length

    def extract(self, text: str) -> List[str]:
        """Candidate advisor names in first-occurrence order, deduplicated."""
        if not text:
            return []

        candidates = []
        for pattern in CUE_PATTERNS:
            for match in pattern.finditer(text):
                name = match.group(1).strip()
                if self.min_length <= len(name) <= self.max_length:
                    candidates.append(name)

        names = [name for name in dict.fromkeys(candidates) if not self._is_excluded(name)]
        logger.debug("Extracted %d candidate advisor names", len(names),
                     extra={'event': 'advisor_names_extracted', 'count': len(names)})
        return names

    def _is_excluded(self, name: str) -> bool:
        return any(pattern.search(name) for pattern in self._excluded)
