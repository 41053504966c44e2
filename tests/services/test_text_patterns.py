from __future__ import annotations

import re

import pytest

from findata.services.extraction.text_patterns import (
    ExtractionRule,
    apply_rules,
    extract_amount,
    extract_count,
    extract_field,
    extract_financial_data,
    extract_investors,
    extract_year,
    format_currency,
    format_employee_range,
    parse_employee_size,
    pick_description,
)


def test_extracts_funding_headcount_and_founding_year_from_prose():
    text = "Test Company founded in 2020 with 100 employees. Raised $50 million in funding."

    record = extract_financial_data(text)

    assert record.founded_year == "2020"
    assert record.employee_count == "100"
    assert record.total_funding == "$50M"


def test_employee_band_reports_midpoint_with_original_range():
    assert parse_employee_size("51-200") == "125 (51-200)"
    assert extract_field("We have 51-200 employees worldwide.", "employee_count") == "125 (51-200)"


@pytest.mark.parametrize(
    ("low", "high", "expected"),
    [
        ("11", "50", "30 (11-50)"),
        ("1", "10", "5 (1-10)"),
        ("201", "500", "350 (201-500)"),
        ("1,001", "5,000", "3000 (1,001-5,000)"),
    ],
)
def test_employee_range_rounds_ties_down(low, high, expected):
    assert format_employee_range(low, high) == expected


def test_size_without_range_is_kept_verbatim():
    assert parse_employee_size(" 10001+ ") == "10001+"
    assert parse_employee_size("   ") is None


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("$2.5 billion", "$2.5B"),
        ("$750 thousand", "$750K"),
        ("$12m", "$12M"),
        ("$3 bn", "$3B"),
        ("$120M", "$120M"),
    ],
)
def test_currency_is_normalized_without_unit_arithmetic(text, expected):
    assert extract_amount(text) == expected


def test_format_currency_rejects_unknown_units():
    assert format_currency("5", "trillion") is None
    assert format_currency("5", "million") == "$5M"


def test_first_matching_rule_wins_for_conflicting_mentions():
    text = "Acme raised $10 million in 2019. Later it raised $20 million more."

    assert extract_field(text, "total_funding") == "$10M"


def test_total_funding_phrase_outranks_earlier_round_mention():
    text = "Acme raised $5 million in a seed round. Total funding: $42 million to date."

    assert extract_field(text, "total_funding") == "$42M"


def test_fields_are_extracted_independently():
    text = (
        "Acme is a payments company that helps online businesses get paid. "
        "Headquartered in San Francisco, California, the company closed a Series B round "
        "and is valued at $1.2 billion. Revenue reached $80 million in annual revenue, "
        "it grew 150% year over year, monthly burn of $2 million per month and "
        "18 months of runway."
    )

    record = extract_financial_data(text)

    assert record.description.startswith("Acme is a payments company")
    assert record.headquarters == "San Francisco, California"
    assert record.last_funding_round == "Series B"
    assert record.valuation == "$1.2B"
    assert record.revenue == "$80M"
    assert record.growth_rate == "150%"
    assert record.burn_rate == "$2M/month"
    assert record.runway == "18 months"


def test_extraction_is_idempotent():
    text = "Founded in 2012, Beta Labs has 450 employees and raised $30 million from Index Ventures."

    first = extract_financial_data(text)
    second = extract_financial_data(text)

    assert first == second
    assert first.investors == ["Index Ventures"]


def test_investors_are_deduplicated_and_capped():
    text = (
        "Backed by Sequoia Capital, Accel Partners and Sequoia Capital again. "
        "Other investors: Lightspeed Ventures, General Catalyst Fund, Tiger Global Investments."
    )

    investors = extract_investors(text, limit=3)

    assert investors == ["Sequoia Capital", "Accel Partners", "Lightspeed Ventures"]


def test_investor_names_drop_leading_filler_words():
    assert extract_investors("The round was Led Greylock Partners") == ["Greylock Partners"]


def test_year_and_count_helpers_scan_short_snippets():
    assert extract_year("2015") == "2015"
    assert extract_year("Founded: March 2009") == "2009"
    assert extract_year("unknown") is None
    assert extract_count("10,000+") == "10,000"
    assert extract_count("201-500") == "350 (201-500)"


def test_description_requires_minimum_length_and_is_truncated():
    long_text = "A" * 700

    assert pick_description(["too short", None, long_text]) == "A" * 500
    assert pick_description(["tiny"]) is None


def test_empty_text_yields_empty_record():
    assert extract_financial_data("").is_empty()
    assert extract_financial_data(None).is_empty()
    assert extract_financial_data("Nothing useful here at all.").is_empty()


def test_unknown_field_raises_key_error():
    with pytest.raises(KeyError):
        extract_field("text", "market_cap")


def test_rule_transform_errors_count_as_no_match():
    def _explode(match: re.Match[str]) -> str:
        raise ValueError("bad number")

    broken = ExtractionRule(field="revenue", pattern=re.compile(r"\d+"), transform=_explode)
    working = ExtractionRule(field="revenue", pattern=re.compile(r"(\d+)"), transform=lambda m: m.group(1))

    assert apply_rules("revenue 42", [broken, working]) == "42"
