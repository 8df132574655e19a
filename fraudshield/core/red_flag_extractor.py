import re
import logging
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import tldextract

from fraudshield.core.normalizer import normalize_text, phrase_pattern
from fraudshield.core.rules import DEFAULT_RULES, RuleDefinition, rules_for_language

logger = logging.getLogger(__name__)

SOCIAL_PLATFORMS = ('telegram', 'whatsapp', 'instagram', 'facebook', 'twitter')
PAYMENT_METHODS = ('upi', 'paytm', 'googlepay', 'phonepe', 'paypal', 'bitcoin', 'crypto')


@dataclass(frozen=True)
class RedFlag:
    code: str
    label: str
    weight: int
    severity: str
    evidence: Tuple[str, ...]

    def to_dict(self, evidence_limit: Optional[int] = None) -> Dict:
        evidence = self.evidence if evidence_limit is None else self.evidence[:evidence_limit]
        return {
            'code': self.code,
            'label': self.label,
            'weight': self.weight,
            'severity': self.severity,
            'evidence': list(evidence),
        }


@dataclass(frozen=True)
class ExtractedMetadata:
    emails: Tuple[str, ...] = ()
    phones: Tuple[str, ...] = ()
    websites: Tuple[str, ...] = ()
    social_media_mentions: Tuple[str, ...] = ()
    payment_method_mentions: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not any(self.to_dict().values())

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            'emails': list(self.emails),
            'phones': list(self.phones),
            'websites': list(self.websites),
            'social_media': list(self.social_media_mentions),
            'payment_methods': list(self.payment_method_mentions),
        }


class ExtractionResult(NamedTuple):
    flags: List[RedFlag]
    metadata: ExtractedMetadata


def _unique(items) -> Tuple[str, ...]:
    """Deduplicate while keeping first-occurrence order."""
    return tuple(dict.fromkeys(items))


class RedFlagExtractor:
    """
    Rule-based fraud red-flag extractor

    Evaluates a weighted rule catalog against normalized text and collects
    contact / payment artifacts from the same input:
    - Red flags with evidence taken from the original text
    - Email addresses
    - Phone numbers (Indian formats, optional +91 prefix)
    - Websites (validated against the public suffix list)
    - Social platform and payment method mentions
    """

    def __init__(self, rules: Sequence[RuleDefinition] = DEFAULT_RULES):
        # Injected, read-only catalog
        self.rules: Tuple[RuleDefinition, ...] = tuple(rules)

        # ===== EVIDENCE PATTERNS (one per distinct trigger phrase) =====
        self.phrase_patterns = {
            phrase: phrase_pattern(phrase)
            for rule in self.rules
            for phrase in rule.trigger_phrases
        }

        # ===== METADATA PATTERNS =====
        self.email_pattern = re.compile(
            r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}'
        )

        # Indian mobile formats with optional +91 prefix
        self.phone_pattern = re.compile(
            r'(?:\+91[-.\s]?)?(?:\d{5}[-.\s]?\d{5}|\d{4}[-.\s]?\d{3}[-.\s]?\d{3}|\d{10})'
        )

        self.website_pattern = re.compile(
            r'(?:https?://)?(?:www\.)?[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}(?:/\S*)?'
        )

        # Bundled public suffix snapshot only, never fetched over the network
        self.domain_extractor = tldextract.TLDExtract(suffix_list_urls=())

    def extract(self, text: str, language: str = 'en') -> ExtractionResult:
        """
        Extract red flags and metadata from text

        Args:
            text: Raw input text (kept as-is for evidence snippets)
            language: Language tag; rules tagged 'all' always apply

        Returns:
            ExtractionResult(flags, metadata), flags in catalog order
        """
        text = text or ''
        normalized = normalize_text(text)

        flags = self._extract_flags(text, normalized, language)
        metadata = self._extract_metadata(text, normalized)

        logger.info(
            "Red flag extraction complete: %d flags",
            len(flags),
            extra={
                'event': 'extraction_complete',
                'language': language,
                'flag_count': len(flags),
                'email_count': len(metadata.emails),
                'phone_count': len(metadata.phones),
                'website_count': len(metadata.websites),
            }
        )
        return ExtractionResult(flags, metadata)

    def _extract_flags(self, text: str, normalized: str, language: str) -> List[RedFlag]:
        flags = []
        if not normalized:
            return flags

        for rule in rules_for_language(self.rules, language):
            evidence = []
            for phrase in rule.trigger_phrases:
                if phrase in normalized:
                    evidence.extend(self._find_evidence(text, phrase))

            if not evidence:
                continue

            flag = RedFlag(
                code=rule.code,
                label=rule.label,
                weight=rule.weight,
                severity=rule.severity,
                evidence=_unique(evidence),
            )
            flags.append(flag)
            logger.debug(
                "Rule fired: %s (+%d)", rule.code, rule.weight,
                extra={'event': 'rule_fired', 'code': rule.code,
                       'weight': rule.weight, 'evidence_count': len(flag.evidence)}
            )
        return flags

    def _find_evidence(self, text: str, phrase: str) -> List[str]:
        """All occurrences of a phrase in the original text, original casing kept."""
        pattern = self.phrase_patterns.get(phrase) or phrase_pattern(phrase)
        matches = [match.group(0) for match in pattern.finditer(text)]
        # Unicode case-folding can differ from str.lower(); the phrase still fired
        return matches or [phrase]

    def _extract_metadata(self, text: str, normalized: str) -> ExtractedMetadata:
        if not normalized:
            return ExtractedMetadata()

        return ExtractedMetadata(
            emails=_unique(self.email_pattern.findall(text)),
            phones=_unique(match.strip() for match in self.phone_pattern.findall(text)),
            websites=_unique(w for w in self.website_pattern.findall(text) if self._is_valid_website(w)),
            social_media_mentions=tuple(p for p in SOCIAL_PLATFORMS if p in normalized),
            payment_method_mentions=tuple(m for m in PAYMENT_METHODS if m in normalized),
        )

    def _is_valid_website(self, candidate: str) -> bool:
        """Reject dotted tokens without a real public suffix (e.g. 'Mr.Sharma')"""
        ext = self.domain_extractor(candidate)
        return bool(ext.domain and ext.suffix)
