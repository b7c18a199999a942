"""
Retail Shop Reporting Engine
Reporting Module
"""
from .aggregation import AggregateBucket, AggregateQuery, AggregationEngine, Dimension, QueryFilters, ReportStore
from .composer import ReportComposer
from .dashboard import DashboardComposer
from .errors import InvalidDateError, InvalidFilterError, QueryExecutionError, ReportingError
from .filters import ReportFilters
from .periods import PeriodResolver, Window

__all__ = [
    "AggregateBucket",
    "AggregateQuery",
    "AggregationEngine",
    "Dimension",
    "QueryFilters",
    "ReportStore",
    "ReportComposer",
    "DashboardComposer",
    "ReportingError",
    "InvalidFilterError",
    "InvalidDateError",
    "QueryExecutionError",
    "ReportFilters",
    "PeriodResolver",
    "Window",
]
