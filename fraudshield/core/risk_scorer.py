import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from fraudshield.core.red_flag_extractor import RedFlag

logger = logging.getLogger(__name__)

MAX_SCORE = 100
MAX_BOOST = 25


@dataclass(frozen=True)
class ClassifierLabel:
    category: str
    confidence: int
    explanation: str = ''

    def to_dict(self) -> Dict:
        return {
            'category': self.category,
            'confidence': self.confidence,
            'explanation': self.explanation,
        }


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    band: str
    breakdown: Dict[str, int]

    def to_dict(self) -> Dict:
        return {'score': self.score, 'band': self.band, 'breakdown': dict(self.breakdown)}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class RiskScorer:
    def __init__(self):
        """
        Additive scoring: rule weights plus a bounded classifier boost
        """
        # Boost per classifier label, checked top-down: (min confidence, points)
        self.boost_steps = (
            (80, 15),
            (60, 8),
            (40, 3),
        )

        # Band upper bounds (inclusive)
        self.thresholds = {
            'low': 34,
            'medium': 64,
        }

    def compute_boost(self, labels: Sequence[ClassifierLabel]) -> int:
        """Sum per-label boost points, then saturate at MAX_BOOST"""
        raw = 0
        for label in labels:
            for min_confidence, points in self.boost_steps:
                if label.confidence >= min_confidence:
                    raw += points
                    break

        boost = _clamp(raw, 0, MAX_BOOST)
        logger.debug(
            "Classifier boost: %d (raw %d, %d labels)", boost, raw, len(labels),
            extra={'event': 'boost_computed', 'boost': boost, 'raw_boost': raw,
                   'label_count': len(labels)}
        )
        return boost

    def score(self, flags: Sequence[RedFlag],
              labels: Sequence[ClassifierLabel] = ()) -> Tuple[int, RiskAssessment]:
        """
        Combine red flags and classifier labels into a risk assessment

        Returns:
            (boost, RiskAssessment) - identical inputs always give identical output
        """
        base_score = sum(flag.weight for flag in flags)
        boost = self.compute_boost(labels)
        total = _clamp(base_score + boost, 0, MAX_SCORE)
        band = self.band_for(total)

        assessment = RiskAssessment(
            score=total,
            band=band,
            breakdown={
                'base_score': base_score,
                'boost': boost,
                'flag_count': len(flags),
                'high_severity_count': sum(1 for f in flags if f.severity == 'high'),
            }
        )
        logger.info("Risk scored: %d (%s)", total, band,
                    extra={'event': 'risk_scored', 'score': total, 'band': band})
        return boost, assessment

    def band_for(self, risk_score: int) -> str:
        if risk_score <= self.thresholds['low']:
            return "LOW"
        elif risk_score <= self.thresholds['medium']:
            return "MEDIUM"
        else:
            return "HIGH"


def labels_from_dicts(items: List[Dict]) -> List[ClassifierLabel]:
    """Rebuild labels from stored/serialized dicts, skipping malformed entries"""
    labels = []
    for item in items or []:
        if not isinstance(item, dict) or 'category' not in item:
            continue
        try:
            confidence = _clamp(int(item.get('confidence', 0)), 0, 100)
        except (TypeError, ValueError):
            continue
        labels.append(ClassifierLabel(str(item['category']), confidence, str(item.get('explanation', ''))))
    return labels
