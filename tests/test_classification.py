"""Tests for cohort predicates and the core-product rule."""
import pandas as pd
import pytest

from salesboard.distributor_kpi.classification import (
    KNOWN_COHORTS,
    classify,
    cohort_mask,
    core_product_mask,
    is_core_product,
    matches,
    select_lines,
)
from salesboard.distributor_kpi.metrics import lines_to_frame
from salesboard.distributor_kpi.models import Cohort


# ---------------------------------------------------------------------------
# Cohort matching
# ---------------------------------------------------------------------------


class TestContainsMatching:
    def test_activ_matches_brand_substring(self, line_factory):
        assert classify(line_factory(brand_name="ACTIV 4T"), KNOWN_COHORTS["activ"])

    def test_matching_is_case_insensitive(self, line_factory):
        assert classify(line_factory(brand_name="  activ scooter "), KNOWN_COHORTS["activ"])

    def test_exclusion_wins_over_inclusion(self, line_factory):
        line = line_factory(brand_name="ACTIV ESSENTIAL")
        assert not classify(line, KNOWN_COHORTS["activ"])

    def test_overlapping_terms_always_false(self):
        cohort = Cohort.from_config("x", {"include": ["MAG"], "exclude": ["MAG"]})
        assert not matches("MAGNATEC", cohort)

    def test_magnatec_variants(self, line_factory):
        cohort = KNOWN_COHORTS["magnatec"]
        for brand in ("MAGNATEC", "MAGNTEC SUV", "Magnatec Diesel"):
            assert classify(line_factory(brand_name=brand), cohort)
        assert not classify(line_factory(brand_name="GTX"), cohort)

    def test_classification_is_idempotent(self, line_factory):
        line = line_factory(brand_name="CRB TURBOMAX")
        cohort = KNOWN_COHORTS["crb_turbomax"]
        assert classify(line, cohort) == classify(line, cohort) is True

    def test_empty_include_never_matches(self, line_factory):
        cohort = Cohort(key="empty")
        assert not classify(line_factory(brand_name="ANYTHING"), cohort)
        assert not classify(line_factory(brand_name=""), cohort)

    def test_unknown_match_mode_rejected(self):
        with pytest.raises(ValueError):
            Cohort(key="bad", match_mode="regex")


class TestExactListMatching:
    def test_power1_exact_name_matches(self, line_factory):
        line = line_factory(product_name="POWER1 4T 10W-30, 10X1L MK")
        assert classify(line, KNOWN_COHORTS["power1"])

    def test_power1_near_miss_does_not_match(self, line_factory):
        line = line_factory(product_name="POWER1 4T 10W-30 10X1L MK")
        assert not classify(line, KNOWN_COHORTS["power1"])

    def test_contains_mode_would_accept_near_miss(self):
        contains = Cohort.from_config("p", {"include": ["POWER1"], "match_mode": "contains"})
        assert matches("POWER1 4T 10W-30 10X1L MK", contains)

    def test_power1_ignores_brand(self, line_factory):
        line = line_factory(brand_name="SOMETHING ELSE", product_name="power1 4t 10w-30, 10x1l mk")
        assert classify(line, KNOWN_COHORTS["power1"])


# ---------------------------------------------------------------------------
# Core product
# ---------------------------------------------------------------------------


class TestCoreProduct:
    def test_regular_product_is_core(self, line_factory):
        assert is_core_product(line_factory())

    def test_autocare_is_not_core(self, line_factory):
        assert not is_core_product(line_factory(brand_name="AUTO CARE MAINTENANCE"))

    def test_excluded_product_is_not_core(self, line_factory):
        assert not is_core_product(line_factory(product_name="Chain Lube 150ml"))

    def test_select_lines_combines_filters(self, mixed_lines):
        selected = select_lines(mixed_lines, KNOWN_COHORTS["activ"], core_products_only=True)
        assert [line.document_no for line in selected] == ["INV-5"]

    def test_frame_masks_agree_with_predicates(self, mixed_lines):
        df = lines_to_frame(mixed_lines)
        core = core_product_mask(df).tolist()
        assert core == [is_core_product(line) for line in mixed_lines]

        for cohort in KNOWN_COHORTS.values():
            mask = cohort_mask(df, cohort).tolist()
            assert mask == [classify(line, cohort) for line in mixed_lines]

    def test_masks_on_empty_frame(self):
        df = lines_to_frame([])
        assert core_product_mask(df).empty
        assert cohort_mask(df, KNOWN_COHORTS["activ"]).empty
        assert isinstance(df, pd.DataFrame)
