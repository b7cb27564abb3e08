# salesboard/distributor_kpi/classification.py
"""
Classification Rules

Pure predicates deciding whether a transaction line belongs to a product
cohort. Matching is case-insensitive; exclusion terms are checked first and
always win over inclusion terms.

- contains:  the field contains at least one include term as a substring
- exactList: the field equals one include term (used for SKU lists)

A cohort with no include terms never matches anything.
"""

from typing import Dict, Iterable, List, Optional

import pandas as pd

from .constants import COHORT_DEFINITIONS, EXCLUDED_PRODUCTS_LIST
from .models import Cohort, TransactionLine


KNOWN_COHORTS: Dict[str, Cohort] = {
    key: Cohort.from_config(key, data) for key, data in COHORT_DEFINITIONS.items()
}

EXCLUDED_PRODUCT_TERMS = tuple(term.upper() for term in EXCLUDED_PRODUCTS_LIST)


def get_cohort(key: str) -> Optional[Cohort]:
    """Look up a known cohort by key."""
    return KNOWN_COHORTS.get(key)


def _normalize(value) -> str:
    if value is None:
        return ""
    return str(value).strip().upper()


def matches(text: str, cohort: Cohort) -> bool:
    """Apply a cohort rule to an already-extracted field value."""
    candidate = _normalize(text)
    if not candidate or not cohort.include_terms:
        return False

    if cohort.match_mode == "exactList":
        if candidate in cohort.exclude_terms:
            return False
        return candidate in cohort.include_terms

    if any(term in candidate for term in cohort.exclude_terms):
        return False
    return any(term in candidate for term in cohort.include_terms)


def classify(line: TransactionLine, cohort: Cohort) -> bool:
    """True when the line belongs to the cohort."""
    return matches(line.field_value(cohort.field), cohort)


def is_autocare(brand_name: str) -> bool:
    return matches(brand_name, KNOWN_COHORTS["autocare"])


def is_excluded_product(product_name: str) -> bool:
    name = _normalize(product_name)
    return any(term in name for term in EXCLUDED_PRODUCT_TERMS)


def is_core_product(line: TransactionLine) -> bool:
    """Core = not autocare and not on the excluded-product list."""
    if is_autocare(line.brand_name):
        return False
    return not is_excluded_product(line.product_name)


def select_lines(
    lines: Iterable[TransactionLine],
    cohort: Optional[Cohort] = None,
    core_products_only: bool = False,
) -> List[TransactionLine]:
    """Filter lines by an optional cohort and the core-product predicate."""
    selected = []
    for line in lines:
        if cohort is not None and not classify(line, cohort):
            continue
        if core_products_only and not is_core_product(line):
            continue
        selected.append(line)
    return selected


def cohort_mask(df: pd.DataFrame, cohort: Cohort) -> pd.Series:
    """Vectorised cohort membership over a frame with the cohort's field column."""
    if df.empty:
        return pd.Series([], dtype=bool, index=df.index)
    return df[cohort.field].map(lambda value: matches(value, cohort)).astype(bool)


def core_product_mask(df: pd.DataFrame) -> pd.Series:
    if df.empty:
        return pd.Series([], dtype=bool, index=df.index)
    autocare = df['brand_name'].map(is_autocare).astype(bool)
    excluded = df['product_name'].map(is_excluded_product).astype(bool)
    return ~autocare & ~excluded
