# salesboard/distributor_kpi/setup/__init__.py
"""
KPI Catalog Administration

CRUD for the kpi_configs table. Editing is for privileged callers only;
report runs read the catalog as-is.

Tables Managed:
- kpi_configs: one row per KPI definition (unique short_key)
"""

from .queries import KpiCatalogStore

__all__ = [
    'KpiCatalogStore',
]
