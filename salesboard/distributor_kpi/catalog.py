# salesboard/distributor_kpi/catalog.py
"""
KPI Catalog

Ordered, validated set of KPI definitions. Definitions come from the seed
list in constants.py or from the kpi_configs table (see setup/queries.py);
either way they are checked once when they enter the catalog, never at
query time.
"""

import copy
import logging
from numbers import Number
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from salesboard.config import config
from .classification import get_cohort
from .constants import (
    GROUPING_FIELDS,
    KPI_KINDS,
    MEASURES,
    METRICS,
    SEED_KPIS,
    SEED_LIMIT_SETTINGS,
    SEED_THRESHOLD_SETTINGS,
    THRESHOLD_OPERATORS,
)
from .exceptions import InvalidCohortDefinitionError
from .models import KpiDefinition, Threshold

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATION
# =============================================================================

def _grouping_keys(data: Mapping[str, Any]) -> List[str]:
    keys = data.get("grouping_keys") or []
    if isinstance(keys, str):
        keys = [k.strip() for k in keys.split(",")]
    return [k for k in keys if k]


def validate_definition(data: Mapping[str, Any], existing_keys: Iterable[str] = ()) -> None:
    """
    Check a raw KPI definition before it is stored or loaded.

    Raises:
        InvalidCohortDefinitionError: on unknown grouping keys, unknown cohort,
            bad metric / measure / kind, a malformed threshold, or a short key
            already in use
    """
    short_key = str(data.get("short_key") or "").strip()
    if not short_key:
        raise InvalidCohortDefinitionError("short_key is required")

    def fail(message: str):
        raise InvalidCohortDefinitionError(message, short_key=short_key)

    if short_key in set(existing_keys):
        fail("short_key already exists")

    keys = _grouping_keys(data)
    if not keys:
        fail("at least one grouping key is required")
    unknown = [k for k in keys if k not in GROUPING_FIELDS]
    if unknown:
        fail(f"unknown grouping key(s): {', '.join(unknown)}")
    if len(set(keys)) != len(keys):
        fail("grouping keys must be distinct")

    metric = data.get("metric", "sum")
    if metric not in METRICS:
        fail(f"unknown metric '{metric}'")
    measure = data.get("measure", "volume")
    if measure not in MEASURES:
        fail(f"unknown measure '{measure}'")
    kind = data.get("kind", "aggregate")
    if kind not in KPI_KINDS:
        fail(f"unknown kind '{kind}'")

    for name in ("distinct_field", "drilldown_key"):
        value = data.get(name)
        if value and value not in GROUPING_FIELDS:
            fail(f"unknown {name} '{value}'")

    cohort_key = data.get("cohort")
    if cohort_key and get_cohort(cohort_key) is None:
        fail(f"unknown cohort '{cohort_key}'")

    threshold = data.get("threshold")
    if threshold:
        if not isinstance(threshold, Mapping):
            fail("threshold must have 'op' and 'value'")
        if threshold.get("op") not in THRESHOLD_OPERATORS:
            fail(f"threshold operator must be one of {', '.join(THRESHOLD_OPERATORS)}")
        value = threshold.get("value")
        if isinstance(value, bool) or not isinstance(value, Number):
            fail("threshold value must be numeric")
        if len(keys) < 2:
            fail("a threshold needs a finer grouping key to qualify (two or more keys)")

    limit = data.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
        fail("limit must be a positive integer")


def definition_from_dict(data: Mapping[str, Any], existing_keys: Iterable[str] = ()) -> KpiDefinition:
    """Validate and build a KpiDefinition from a raw mapping."""
    validate_definition(data, existing_keys)

    threshold = data.get("threshold")
    cohort_key = data.get("cohort")
    return KpiDefinition(
        short_key=str(data["short_key"]).strip(),
        display_name=data.get("display_name") or data["short_key"],
        grouping_keys=tuple(_grouping_keys(data)),
        metric=data.get("metric", "sum"),
        measure=data.get("measure", "volume"),
        cohort=get_cohort(cohort_key) if cohort_key else None,
        core_products_only=bool(data.get("core_products_only", False)),
        threshold=Threshold(threshold["op"], float(threshold["value"])) if threshold else None,
        distinct_field=data.get("distinct_field") or "customer",
        drilldown_key=data.get("drilldown_key") or "customer",
        limit=data.get("limit"),
        kind=data.get("kind", "aggregate"),
        active=bool(data.get("active", True)),
        display_order=int(data.get("display_order") or 0),
        icon_name=data.get("icon_name") or "",
        unit=data.get("unit") or "",
    )


def seed_records() -> List[Dict[str, Any]]:
    """Seed definitions with thresholds and limits resolved from the app settings."""
    records = []
    for seed in SEED_KPIS:
        record = copy.deepcopy(seed)
        key = record["short_key"]
        if key in SEED_THRESHOLD_SETTINGS and record.get("threshold"):
            default = record["threshold"]["value"]
            record["threshold"]["value"] = float(
                config.get_app_setting(SEED_THRESHOLD_SETTINGS[key], default)
            )
        if key in SEED_LIMIT_SETTINGS and record.get("limit"):
            record["limit"] = int(config.get_app_setting(SEED_LIMIT_SETTINGS[key], record["limit"]))
        records.append(record)
    return records


# =============================================================================
# CATALOG
# =============================================================================

class KpiCatalog:
    """
    Read-only view over KPI definitions for one request.

    Usage:
        catalog = KpiCatalog.from_seeds()
        # or: KpiCatalog.from_records(KpiCatalogStore().list_definitions())

        for kpi in catalog.visible():
            ...
        kpi = catalog.get('highVolCount')
    """

    def __init__(self, definitions: Iterable[KpiDefinition]):
        self._by_key: Dict[str, KpiDefinition] = {}
        for definition in definitions:
            if definition.short_key in self._by_key:
                raise InvalidCohortDefinitionError(
                    "short_key already exists", short_key=definition.short_key
                )
            self._by_key[definition.short_key] = definition

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "KpiCatalog":
        definitions = []
        seen: List[str] = []
        for record in records:
            definitions.append(definition_from_dict(record, existing_keys=seen))
            seen.append(definitions[-1].short_key)
        logger.debug(f"Loaded {len(definitions)} KPI definitions")
        return cls(definitions)

    @classmethod
    def from_seeds(cls) -> "KpiCatalog":
        return cls.from_records(seed_records())

    def list(self) -> List[KpiDefinition]:
        """All definitions, ordered by display_order."""
        return sorted(self._by_key.values(), key=lambda d: (d.display_order, d.short_key))

    def visible(self) -> List[KpiDefinition]:
        return [d for d in self.list() if d.active]

    def get(self, short_key: str) -> Optional[KpiDefinition]:
        """Look up by key, including inactive definitions."""
        return self._by_key.get(short_key)

    def __contains__(self, short_key: str) -> bool:
        return short_key in self._by_key

    def __iter__(self) -> Iterator[KpiDefinition]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._by_key)
