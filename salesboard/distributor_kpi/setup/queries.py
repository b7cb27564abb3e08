# salesboard/distributor_kpi/setup/queries.py
"""
SQL Queries for KPI Catalog Administration

CRUD operations for KPI definitions (kpi_configs). Every write is validated
before it reaches the database; a malformed definition or a duplicate
short_key raises InvalidCohortDefinitionError and nothing is written.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from salesboard.db import get_db_engine
from ..catalog import KpiCatalog, seed_records, validate_definition
from ..exceptions import InvalidCohortDefinitionError

logger = logging.getLogger(__name__)

_COLUMNS = [
    "short_key", "display_name", "grouping_keys", "metric", "measure", "cohort",
    "core_products_only", "threshold_op", "threshold_value", "distinct_field",
    "drilldown_key", "result_limit", "kind", "is_active", "display_order",
    "icon_name", "unit",
]


class KpiCatalogStore:
    """
    Database store for KPI definitions.

    Usage:
        from salesboard.distributor_kpi.setup import KpiCatalogStore

        store = KpiCatalogStore()

        # Read
        catalog = store.load_catalog()
        record = store.get_definition('power1Count')

        # Create
        store.create_definition({'short_key': 'volByState', 'grouping_keys': ['state_name'], ...})

        # Update
        store.update_definition('power1Count', threshold={'op': '>=', 'value': 10})

        # Delete
        store.delete_definition('volByState')
    """

    def __init__(self, engine: Engine = None):
        """
        Args:
            engine: Optional engine; defaults to the shared application engine
        """
        self._engine = engine

    @property
    def engine(self):
        """Lazy load database engine."""
        if self._engine is None:
            self._engine = get_db_engine()
        return self._engine

    # =========================================================================
    # READ
    # =========================================================================

    def list_definitions(self, include_inactive: bool = True) -> List[Dict[str, Any]]:
        """All stored definitions as raw records, ordered by display_order."""
        query = f"""
            SELECT {', '.join(_COLUMNS)}
            FROM kpi_configs
            {'' if include_inactive else 'WHERE is_active = :active'}
            ORDER BY display_order, short_key
        """
        params = {} if include_inactive else {'active': True}
        df = self._execute_query(query, params, "list_kpi_definitions")
        return [self._row_to_record(row) for row in df.to_dict(orient='records')]

    def get_definition(self, short_key: str) -> Optional[Dict[str, Any]]:
        query = f"""
            SELECT {', '.join(_COLUMNS)}
            FROM kpi_configs
            WHERE short_key = :short_key
        """
        df = self._execute_query(query, {'short_key': short_key}, "get_kpi_definition")
        if df.empty:
            return None
        return self._row_to_record(df.to_dict(orient='records')[0])

    def existing_keys(self) -> List[str]:
        df = self._execute_query("SELECT short_key FROM kpi_configs", {}, "kpi_short_keys")
        return df['short_key'].tolist() if not df.empty else []

    def load_catalog(self) -> KpiCatalog:
        """Catalog built from the stored definitions; seeds when the table is empty."""
        records = self.list_definitions()
        if not records:
            logger.info("kpi_configs is empty, using seed catalog")
            return KpiCatalog.from_seeds()
        return KpiCatalog.from_records(records)

    # =========================================================================
    # CREATE
    # =========================================================================

    def create_definition(self, data: Mapping[str, Any]) -> Dict:
        """
        Validate and insert a definition.

        Returns:
            Dict with success, id, message
        """
        validate_definition(data, existing_keys=self.existing_keys())

        query = f"""
            INSERT INTO kpi_configs ({', '.join(_COLUMNS)})
            VALUES ({', '.join(':' + c for c in _COLUMNS)})
        """
        return self._execute_insert(query, self._record_to_params(data), "create_kpi_definition")

    def seed_defaults(self) -> int:
        """Insert every seed KPI whose short_key is not stored yet."""
        existing = set(self.existing_keys())
        created = 0
        for seed in seed_records():
            if seed['short_key'] in existing:
                continue
            if self.create_definition(seed)['success']:
                created += 1
        logger.info(f"Seeded {created} KPI definitions")
        return created

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update_definition(self, short_key: str, **changes) -> Dict:
        """
        Apply changes to a stored definition; the merged record is validated.

        Returns:
            Dict with success, count, message
        """
        current = self.get_definition(short_key)
        if current is None:
            raise InvalidCohortDefinitionError("definition not found", short_key=short_key)

        merged = {**current, **changes}
        others = [k for k in self.existing_keys() if k != short_key]
        validate_definition(merged, existing_keys=others)

        params = self._record_to_params(merged)
        set_parts = [f"{c} = :{c}" for c in _COLUMNS] + ["updated_at = CURRENT_TIMESTAMP"]
        params['current_key'] = short_key

        query = f"""
            UPDATE kpi_configs
            SET {', '.join(set_parts)}
            WHERE short_key = :current_key
        """
        return self._execute_update(query, params, "update_kpi_definition")

    def set_active(self, short_key: str, active: bool) -> Dict:
        query = """
            UPDATE kpi_configs
            SET is_active = :active, updated_at = CURRENT_TIMESTAMP
            WHERE short_key = :short_key
        """
        return self._execute_update(query, {'short_key': short_key, 'active': active}, "set_kpi_active")

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_definition(self, short_key: str) -> Dict:
        query = "DELETE FROM kpi_configs WHERE short_key = :short_key"
        return self._execute_update(query, {'short_key': short_key}, "delete_kpi_definition")

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    @staticmethod
    def _record_to_params(data: Mapping[str, Any]) -> Dict[str, Any]:
        keys = data.get('grouping_keys') or []
        if not isinstance(keys, str):
            keys = ','.join(keys)
        threshold = data.get('threshold') or {}
        return {
            'short_key': str(data['short_key']).strip(),
            'display_name': data.get('display_name') or data['short_key'],
            'grouping_keys': keys,
            'metric': data.get('metric', 'sum'),
            'measure': data.get('measure', 'volume'),
            'cohort': data.get('cohort'),
            'core_products_only': bool(data.get('core_products_only', False)),
            'threshold_op': threshold.get('op'),
            'threshold_value': threshold.get('value'),
            'distinct_field': data.get('distinct_field') or 'customer',
            'drilldown_key': data.get('drilldown_key') or 'customer',
            'result_limit': data.get('limit'),
            'kind': data.get('kind', 'aggregate'),
            'is_active': bool(data.get('active', True)),
            'display_order': int(data.get('display_order') or 0),
            'icon_name': data.get('icon_name') or '',
            'unit': data.get('unit') or '',
        }

    @staticmethod
    def _row_to_record(row: Mapping[str, Any]) -> Dict[str, Any]:
        """Database row -> raw definition mapping understood by the catalog."""

        def present(value) -> bool:
            return value is not None and not (isinstance(value, float) and pd.isna(value))

        threshold = None
        if present(row.get('threshold_op')) and present(row.get('threshold_value')):
            threshold = {'op': row['threshold_op'], 'value': float(row['threshold_value'])}

        limit = row.get('result_limit')
        return {
            'short_key': row['short_key'],
            'display_name': row['display_name'],
            'grouping_keys': [k for k in str(row['grouping_keys']).split(',') if k],
            'metric': row['metric'],
            'measure': row['measure'],
            'cohort': row['cohort'] if present(row.get('cohort')) else None,
            'core_products_only': bool(row['core_products_only']),
            'threshold': threshold,
            'distinct_field': row['distinct_field'] if present(row.get('distinct_field')) else 'customer',
            'drilldown_key': row['drilldown_key'] if present(row.get('drilldown_key')) else 'customer',
            'limit': int(limit) if present(limit) else None,
            'kind': row['kind'],
            'active': bool(row['is_active']),
            'display_order': int(row['display_order'] or 0),
            'icon_name': row['icon_name'] or '',
            'unit': row['unit'] or '',
        }

    def _execute_query(
        self,
        query: str,
        params: dict,
        query_name: str = "query"
    ) -> pd.DataFrame:
        """Execute SQL query and return DataFrame."""
        try:
            logger.debug(f"Executing {query_name}")
            with self.engine.connect() as conn:
                df = pd.read_sql(text(query), conn, params=params)
            logger.debug(f"{query_name} returned {len(df)} rows")
            return df
        except SQLAlchemyError as e:
            logger.error(f"Error executing {query_name}: {e}")
            raise

    def _execute_insert(
        self,
        query: str,
        params: dict,
        operation_name: str = "insert"
    ) -> Dict:
        """Execute INSERT and return result with new ID."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(query), params)
                conn.commit()

                last_id = result.lastrowid
                logger.info(f"{operation_name} successful, id={last_id}")
                return {
                    'success': True,
                    'id': last_id,
                    'message': f'{operation_name} completed successfully'
                }
        except SQLAlchemyError as e:
            logger.error(f"Error in {operation_name}: {e}")
            return {
                'success': False,
                'id': None,
                'message': str(e)
            }

    def _execute_update(
        self,
        query: str,
        params: dict,
        operation_name: str = "update"
    ) -> Dict:
        """Execute UPDATE/DELETE and return result."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(query), params)
                conn.commit()

                rows_affected = result.rowcount
                logger.info(f"{operation_name} successful, {rows_affected} rows affected")
                return {
                    'success': True,
                    'count': rows_affected,
                    'message': f'{operation_name} completed successfully'
                }
        except SQLAlchemyError as e:
            logger.error(f"Error in {operation_name}: {e}")
            return {
                'success': False,
                'count': 0,
                'message': str(e)
            }
