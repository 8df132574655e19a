import logging
from unittest.mock import MagicMock

import pytest

from fraudshield.core.advisor_resolver import (
    AdvisorMatch,
    AdvisorRecord,
    AdvisorResolver,
    InMemoryAdvisorRegistry,
    deduplicate_matches,
    levenshtein_distance,
    match_confidence,
)


def test_exact_name_returns_single_exact_match(memory_registry):
    matches = AdvisorResolver(memory_registry).find_by_name("Rajesh Kumar Sharma", 5)

    assert len(matches) == 1
    assert matches[0].match_type == "exact"
    assert matches[0].confidence == 100
    assert matches[0].advisor.registration_number == "INH000001234"


def test_exact_name_is_case_insensitive(memory_registry):
    matches = AdvisorResolver(memory_registry).find_by_name("  rajesh kumar SHARMA ", 5)
    assert [(m.match_type, m.confidence) for m in matches] == [("exact", 100)]


def test_typos_fall_back_to_fuzzy_match(memory_registry):
    matches = AdvisorResolver(memory_registry).find_by_name("Rajsh Kumar Shrma", 5)

    assert len(matches) == 1
    assert matches[0].match_type == "fuzzy"
    assert matches[0].advisor.name == "Rajesh Kumar Sharma"
    assert 50 < matches[0].confidence < 95


def test_text_tier_matches_firm_tokens(memory_registry):
    matches = AdvisorResolver(memory_registry).find_by_name("WealthMax", 5)

    assert [m.advisor.name for m in matches] == ["Priya Singh"]
    assert matches[0].match_type == "fuzzy"


def test_substring_tier_when_no_token_matches(memory_registry):
    matches = AdvisorResolver(memory_registry).find_by_name("tha Na", 5)

    assert [m.advisor.name for m in matches] == ["Kavitha Nair"]
    assert matches[0].confidence == match_confidence("tha Na", "Kavitha Nair") == 45


def test_no_match_returns_empty(memory_registry):
    assert AdvisorResolver(memory_registry).find_by_name("Zzyzx Qwerty", 5) == []


@pytest.mark.parametrize("query", ["", " ", "a", " b ", None])
def test_short_queries_short_circuit(query):
    registry = MagicMock()
    assert AdvisorResolver(registry).find_by_name(query, 5) == []
    registry.find_exact_name.assert_not_called()


def test_results_ranked_by_confidence_with_stable_ties():
    registry = InMemoryAdvisorRegistry([
        AdvisorRecord(name="Sunil Kumar", registration_number="R1"),
        AdvisorRecord(name="Anil Kumar", registration_number="R2"),
        AdvisorRecord(name="Ajit Kumar", registration_number="R3"),
    ])
    matches = AdvisorResolver(registry).find_by_name("Kumar", 10)

    assert [m.advisor.registration_number for m in matches] == ["R2", "R3", "R1"]
    assert [m.confidence for m in matches] == [45, 45, 41]


def test_limit_applies_after_ranking():
    registry = InMemoryAdvisorRegistry([
        AdvisorRecord(name="Sunil Kumar", registration_number="R1"),
        AdvisorRecord(name="Anil Kumar", registration_number="R2"),
    ])
    matches = AdvisorResolver(registry).find_by_name("Kumar", 1)
    assert [m.advisor.registration_number for m in matches] == ["R2"]


def test_exact_tier_capped_at_limit():
    registry = InMemoryAdvisorRegistry([
        AdvisorRecord(name="Amit Shah", registration_number="R1"),
        AdvisorRecord(name="Amit Shah", registration_number="R2"),
    ])
    matches = AdvisorResolver(registry).find_by_name("Amit Shah", 1)
    assert [(m.advisor.registration_number, m.match_type) for m in matches] == [("R1", "exact")]


def test_find_by_registration(memory_registry):
    resolver = AdvisorResolver(memory_registry)

    match = resolver.find_by_registration("inh000003456")
    assert match.advisor.name == "Amit Patel"
    assert match.advisor.status == "suspended"
    assert (match.match_type, match.confidence) == ("exact", 100)

    assert resolver.find_by_registration("INH999999999") is None
    assert resolver.find_by_registration("  ") is None


def test_registry_failure_is_absorbed(caplog):
    registry = MagicMock()
    registry.find_exact_name.side_effect = RuntimeError("connection lost")
    registry.find_by_registration.side_effect = RuntimeError("connection lost")
    resolver = AdvisorResolver(registry)

    with caplog.at_level(logging.WARNING):
        assert resolver.find_by_name("Priya Singh", 5) == []
        assert resolver.find_by_registration("INH000002345") is None

    events = [getattr(record, "event", None) for record in caplog.records]
    assert events.count("registry_unavailable") == 2


def test_match_confidence_identity():
    for value in ("a", "Priya Singh", "रमेश", "INH000001234"):
        assert match_confidence(value, value) == 100
    assert match_confidence("PRIYA", "priya") == 100


def test_match_confidence_containment_is_symmetric():
    assert match_confidence("Priya", "Priya Singh") == match_confidence("Priya Singh", "Priya") == 41
    assert match_confidence("sharma", "Rajesh Kumar Sharma") == match_confidence("Rajesh Kumar Sharma", "sharma")


def test_match_confidence_edit_distance():
    assert match_confidence("Rajsh Kumar Shrma", "Rajesh Kumar Sharma") == 72
    assert match_confidence("abc", "xyz") == 0


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("abc", "abc") == 0
    assert levenshtein_distance("flaw", "lawn") == 2


def test_deduplicate_matches_by_registration_number():
    first = AdvisorRecord(name="Priya Singh", registration_number="INH000002345")
    other = AdvisorRecord(name="Amit Patel", registration_number="INH000003456")

    merged = deduplicate_matches([
        AdvisorMatch(first, "fuzzy", 60),
        AdvisorMatch(other, "fuzzy", 50),
        AdvisorMatch(first, "exact", 100),
        AdvisorMatch(other, "fuzzy", 40),
    ])

    assert [(m.advisor.name, m.match_type, m.confidence) for m in merged] == [
        ("Priya Singh", "exact", 100),
        ("Amit Patel", "fuzzy", 50),
    ]


def test_match_serialization(memory_registry):
    match = AdvisorResolver(memory_registry).find_by_registration("INH000001234")
    payload = match.to_dict()

    assert payload["match_type"] == "exact"
    assert payload["advisor"]["registration_date"] == "2018-03-15"
    assert payload["advisor"]["contact"]["email"] == "rajesh.sharma@securewealth.in"
