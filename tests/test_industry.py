"""
Tests for rule-based industry classification.
"""

import pytest

from onmarket.analyst.industry import (
    MIN_CLASSIFY_SCORE,
    SOURCE_OVERRIDE_CONFIDENCE,
    IndustryScore,
    build_industry_blob,
    classify_industry,
    industry_from_source_name,
    score_industries,
)
from onmarket.analyst.schemas import IndustryTag


class TestSourceOverride:
    """Industry suffixes on source names pin the tag."""

    @pytest.mark.parametrize("name,expected", [
        ("Synergy Business Brokers - HVAC", IndustryTag.HVAC),
        ("VR Business Brokers (Plumbing)", IndustryTag.PLUMBING),
        ("Murphy: Electrical", IndustryTag.ELECTRICAL),
        ("Synergy | hvac", IndustryTag.HVAC),
        ("Synergy – Plumbing ", IndustryTag.PLUMBING),
    ])
    def test_suffixes(self, name, expected):
        assert industry_from_source_name(name) == expected

    @pytest.mark.parametrize("name", [
        "Murphy Business Sales",
        "HVAC Brokers Inc",
        "",
        None,
    ])
    def test_no_suffix(self, name):
        assert industry_from_source_name(name) is None

    def test_override_beats_keywords(self):
        tag, confidence = classify_industry(
            "Synergy Business Brokers - Plumbing",
            ["hvac furnace air conditioning heat pump"],
        )
        assert tag == IndustryTag.PLUMBING
        assert confidence == SOURCE_OVERRIDE_CONFIDENCE


class TestKeywordScoring:
    def test_score_formula(self):
        assert IndustryScore(IndustryTag.HVAC, strong_hits=1, weak_hits=0).score == 35
        assert IndustryScore(IndustryTag.HVAC, strong_hits=2, weak_hits=1).score == 35 * 2 + 10 + 12
        assert IndustryScore(IndustryTag.HVAC, strong_hits=4, weak_hits=3).score == 100

    def test_qualification(self):
        assert IndustryScore(IndustryTag.HVAC, 1, 0).qualifies
        assert IndustryScore(IndustryTag.HVAC, 0, 2).qualifies
        assert not IndustryScore(IndustryTag.HVAC, 0, 1).qualifies
        assert not IndustryScore(IndustryTag.HVAC, 3, 0, excluded=True).qualifies

    def test_terms_are_word_bounded(self):
        scores = {s.tag: s for s in score_industries("shvacx | superplumbingco")}
        assert scores[IndustryTag.HVAC].strong_hits == 0
        assert scores[IndustryTag.PLUMBING].strong_hits == 0

    def test_plurals_match(self):
        scores = {s.tag: s for s in score_industries("we install furnaces and repair boilers")}
        assert scores[IndustryTag.HVAC].strong_hits == 1
        assert scores[IndustryTag.HVAC].weak_hits == 1

    def test_blob_joins_non_empty_parts_lowercased(self):
        assert build_industry_blob(["HVAC Co", None, "", "Dallas"]) == "hvac co | dallas"


class TestClassifyIndustry:
    def test_hvac_listing(self):
        tag, confidence = classify_industry(
            "VR Business Brokers",
            [
                "Established HVAC Contractor",
                "Residential heating and air conditioning service company",
            ],
        )
        assert tag == IndustryTag.HVAC
        assert confidence == 100

    def test_hvac_contractor_blob(self):
        tag, confidence = classify_industry(
            None, ["HVAC contractor specializing in furnace and heat pump installs"],
        )
        assert tag == IndustryTag.HVAC
        assert confidence >= MIN_CLASSIFY_SCORE

    def test_software_company_is_untagged(self):
        assert classify_industry(None, ["software company"]) == (None, 0)

    def test_hvac_software_is_excluded(self):
        tag, _ = classify_industry(None, ["HVAC software for heating and air conditioning dispatch"])
        assert tag is None

    def test_plumbing_listing(self):
        tag, confidence = classify_industry(
            "Murphy Business Sales",
            ["Plumbing company offering drain cleaning"],
        )
        assert tag == IndustryTag.PLUMBING
        # plumbing + drain cleaning (strong, +10 bonus) and drain (weak)
        assert confidence == 35 * 2 + 10 + 12

    def test_electrical_listing(self):
        tag, _ = classify_industry(
            None,
            ["Licensed electrician business, panel upgrade and rewiring work"],
        )
        assert tag == IndustryTag.ELECTRICAL

    def test_single_strong_hit_is_not_enough(self):
        assert classify_industry(None, ["Owner also services a furnace now and then"]) == (None, 0)

    def test_unrelated_listing(self):
        assert classify_industry("Murphy Business Sales", ["Retail bakery with loyal customers"]) == (None, 0)

    def test_exclusion_disqualifies(self):
        tag, _ = classify_industry(
            None,
            ["HVAC supply distributor carrying furnace and heat pump lines"],
        )
        assert tag is None

    def test_electronics_is_not_electrical(self):
        tag, _ = classify_industry(None, ["Electronics repair shop, electrician on staff, rewiring"])
        assert tag is None

    def test_empty_blob(self):
        assert classify_industry(None, []) == (None, 0)

    def test_threshold_constant(self):
        assert MIN_CLASSIFY_SCORE == 55
