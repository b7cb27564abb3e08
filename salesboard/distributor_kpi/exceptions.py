# salesboard/distributor_kpi/exceptions.py
"""Error kinds raised by the distributor KPI module."""

from typing import Iterable, Optional


class SalesboardError(Exception):
    """Base class for all module errors."""


class EmptyImportError(SalesboardError):
    """No valid rows survived ingestion; nothing is committed."""

    def __init__(self, schema: str, rejected: int = 0):
        self.schema = schema
        self.rejected = rejected
        super().__init__(
            f"No valid {schema} records found in the file ({rejected} rows rejected)"
        )


class SchemaMismatchError(SalesboardError):
    """A required column family is entirely absent from the input headers."""

    def __init__(self, schema: str, missing: Iterable[str]):
        self.schema = schema
        self.missing = list(missing)
        super().__init__(
            f"Input does not look like a {schema} file: missing column(s) for "
            f"{', '.join(self.missing)}"
        )


class InvalidCohortDefinitionError(SalesboardError):
    """A KPI definition is malformed; rejected when written to the catalog."""

    def __init__(self, message: str, short_key: Optional[str] = None):
        self.short_key = short_key
        prefix = f"KPI '{short_key}': " if short_key else ""
        super().__init__(f"{prefix}{message}")


class AggregationCancelledError(SalesboardError):
    """Raised when a chunked aggregation is cancelled by its caller."""
