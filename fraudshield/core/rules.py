"""
Fraud-pattern rule catalog.

The catalog is an immutable tuple of RuleDefinition values. It is built once at
process start (from DEFAULT_RULES or a JSON file) and injected into the
RedFlagExtractor; nothing mutates it at runtime.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Tuple

from fraudshield.core.normalizer import normalize_text

SEVERITIES = ('low', 'medium', 'high')
RULE_LANGUAGES = ('en', 'hi', 'mr', 'all')
CATEGORIES = ('financial', 'social', 'technical', 'linguistic', 'behavioral')
MAX_RULE_WEIGHT = 50


@dataclass(frozen=True)
class RuleDefinition:
    code: str
    trigger_phrases: Tuple[str, ...]
    weight: int
    severity: str
    language: str = 'all'
    # Further input languages a language-specific set is also applied to
    extra_languages: Tuple[str, ...] = ()
    name: str = ''
    description: str = ''
    category: str = 'financial'
    active: bool = True

    def __post_init__(self):
        if not self.code:
            raise ValueError("Rule code must not be empty")
        if not isinstance(self.weight, int) or not 0 <= self.weight <= MAX_RULE_WEIGHT:
            raise ValueError(f"{self.code}: weight must be an integer in [0, {MAX_RULE_WEIGHT}]")
        if self.severity not in SEVERITIES:
            raise ValueError(f"{self.code}: unknown severity '{self.severity}'")
        if self.language not in RULE_LANGUAGES:
            raise ValueError(f"{self.code}: unknown language '{self.language}'")
        extra = tuple(self.extra_languages)
        if any(lang not in RULE_LANGUAGES or lang == 'all' for lang in extra):
            raise ValueError(f"{self.code}: unknown extra language in {extra}")
        object.__setattr__(self, 'extra_languages', extra)
        if self.category not in CATEGORIES:
            raise ValueError(f"{self.code}: unknown category '{self.category}'")

        phrases = tuple(normalize_text(p) for p in self.trigger_phrases if p and p.strip())
        if not phrases:
            raise ValueError(f"{self.code}: at least one trigger phrase is required")
        if len(set(phrases)) != len(phrases):
            raise ValueError(f"{self.code}: duplicate trigger phrases")
        # Phrases are compared against normalized text
        object.__setattr__(self, 'trigger_phrases', phrases)

    @property
    def label(self) -> str:
        return label_for(self.code)

    def applies_to(self, language: str) -> bool:
        return self.language == 'all' or language == self.language or language in self.extra_languages

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "RuleDefinition":
        phrases = data.get('trigger_phrases') or data.get('patterns') or ()
        if isinstance(phrases, str):
            phrases = (phrases,)
        return RuleDefinition(
            code=str(data.get('code', '')).strip(),
            trigger_phrases=tuple(str(p) for p in phrases),
            weight=int(data.get('weight', 0)),
            severity=str(data.get('severity', 'medium')),
            language=str(data.get('language', 'all')),
            extra_languages=tuple(str(lang) for lang in data.get('extra_languages') or ()),
            name=str(data.get('name', '')),
            description=str(data.get('description', '')),
            category=str(data.get('category', 'financial')),
            active=bool(data.get('active', True)),
        )


def label_for(code: str) -> str:
    return code.replace('_', ' ').lower()


DEFAULT_RULES: Tuple[RuleDefinition, ...] = (
    # ===== HIGH-RISK FINANCIAL PROMISES =====
    RuleDefinition(
        code='GUARANTEED_RETURNS',
        trigger_phrases=('guaranteed', 'guarantee', 'assured returns', 'fixed profit', 'no risk'),
        weight=25, severity='high',
        name='Guaranteed returns',
        description='Promises of guaranteed or risk-free profit',
    ),
    RuleDefinition(
        code='UNREALISTIC_RETURNS',
        trigger_phrases=('double your money', '100% profit', '200% return',
                         'multiply your investment', 'triple your money'),
        weight=30, severity='high',
        name='Unrealistic returns',
        description='Return figures far beyond any regulated product',
    ),
    RuleDefinition(
        code='URGENCY_PRESSURE',
        trigger_phrases=('limited time', 'offer expires', 'act now', 'hurry up',
                         'last chance', 'only today'),
        weight=20, severity='medium', category='behavioral',
        name='Urgency pressure',
        description='Artificial deadlines that discourage verification',
    ),
    RuleDefinition(
        code='INSIDER_CLAIMS',
        trigger_phrases=('insider information', 'secret tip', 'confidential',
                         'exclusive access', 'inside knowledge'),
        weight=25, severity='high',
        name='Insider claims',
        description='Claims of non-public or privileged information',
    ),

    # ===== IPO AND TRADING SCAMS =====
    RuleDefinition(
        code='PRE_IPO_SCAM',
        trigger_phrases=('pre-ipo', 'pre ipo', 'before listing', 'unlisted shares', 'firm allotment'),
        weight=30, severity='high',
        name='Pre-IPO allotment',
        description='Offers of shares before listing or guaranteed allotment',
    ),
    RuleDefinition(
        code='PUMP_DUMP',
        trigger_phrases=('pump and dump', 'coordinate buying', 'target price',
                         'exit strategy', 'book profit'),
        weight=35, severity='high', category='behavioral',
        name='Pump and dump',
        description='Coordinated buying to inflate a price before selling',
    ),

    # ===== COMMUNICATION RED FLAGS =====
    RuleDefinition(
        code='UNOFFICIAL_CHANNELS',
        trigger_phrases=('telegram', 'whatsapp', 'signal app', 'discord', 'private group'),
        weight=15, severity='medium', category='social',
        name='Unofficial channels',
        description='Advice routed through chat groups instead of registered channels',
    ),
    RuleDefinition(
        code='CLONE_APP_WARNING',
        trigger_phrases=('clone app', 'fake app', 'duplicate app', 'mirror app', 'copy trading'),
        weight=25, severity='high', category='technical',
        name='Clone trading app',
        description='Look-alike trading apps or copy-trading schemes',
    ),

    # ===== PAYMENT RED FLAGS =====
    RuleDefinition(
        code='SUSPICIOUS_PAYMENT',
        trigger_phrases=('upi', 'paytm', 'googlepay', 'phonepe', 'cash only',
                         'cryptocurrency', 'bitcoin'),
        weight=15, severity='medium',
        name='Suspicious payment method',
        description='Payments to personal wallets, cash or crypto',
    ),
    RuleDefinition(
        code='ADVANCE_PAYMENT',
        trigger_phrases=('pay first', 'advance payment', 'registration fee',
                         'processing charges', 'token amount'),
        weight=20, severity='medium',
        name='Advance payment',
        description='Upfront fees before any service is delivered',
    ),

    # ===== REGULATORY RED FLAGS =====
    RuleDefinition(
        code='NO_REGULATION',
        trigger_phrases=('no sebi', 'unregulated', 'offshore', 'tax free', 'black money'),
        weight=30, severity='high',
        name='No regulation',
        description='Schemes advertised as outside regulatory oversight',
    ),
    RuleDefinition(
        code='FAKE_CREDENTIALS',
        trigger_phrases=('certified advisor', 'sebi registered', 'rbi approved', 'government scheme'),
        weight=20, severity='medium',
        name='Credential claims',
        description='Registration or approval claims that need checking',
    ),

    # ===== LANGUAGE-SPECIFIC SETS (additive) =====
    RuleDefinition(
        code='HINDI_SCAM_PHRASES',
        trigger_phrases=('पक्का मुनाफा', 'गारंटी', 'जल्दी करें', 'सिर्फ आज', 'दोगुना पैसा'),
        weight=25, severity='high', language='hi', extra_languages=('mr',), category='linguistic',
        name='Hindi scam phrases',
    ),
    RuleDefinition(
        code='MARATHI_SCAM_PHRASES',
        trigger_phrases=('खात्रीशीर परतावा', 'हमखास नफा', 'लवकर करा', 'फक्त आज', 'दुप्पट पैसे'),
        weight=25, severity='high', language='mr', category='linguistic',
        name='Marathi scam phrases',
    ),
)


def validate_catalog(rules: Iterable[RuleDefinition]) -> Tuple[RuleDefinition, ...]:
    catalog = tuple(rule for rule in rules if rule.active)
    seen = set()
    for rule in catalog:
        if rule.code in seen:
            raise ValueError(f"Duplicate rule code: {rule.code}")
        seen.add(rule.code)
    return catalog


def load_rule_catalog(path: Optional[str] = None) -> Tuple[RuleDefinition, ...]:
    """Load the rule catalog from a JSON array, or the built-in catalog when no path is given."""
    if not path:
        return DEFAULT_RULES

    catalog_path = Path(path)
    if not catalog_path.exists():
        raise FileNotFoundError(f"Rule catalog not found: {path}")

    with catalog_path.open('r', encoding='utf-8') as handle:
        payload = json.load(handle)
    if not isinstance(payload, list):
        raise ValueError("Rule catalog must be a JSON array of rule objects")

    return validate_catalog(RuleDefinition.from_dict(item) for item in payload)


def rules_for_language(rules: Sequence[RuleDefinition], language: str) -> Tuple[RuleDefinition, ...]:
    return tuple(rule for rule in rules if rule.applies_to(language))
