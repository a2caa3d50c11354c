"""Domain models for the risk register toolkit.

This package contains the domain model classes shared by the query engine,
upload handling, scoring and persistence services.
"""

from .change_set import ChangeSet, SaveResult, UpdatedRecord
from .error_record import ErrorRecord
from .filter_condition import Connector, DataType, FilterCondition, Operator
from .query_result import QueryResult, QueryStatus
from .risk_score import DashboardSummary, RiskScore

__all__ = [
    # Query models
    "Connector",
    "DataType",
    "FilterCondition",
    "Operator",
    "QueryResult",
    "QueryStatus",
    # Scoring models
    "DashboardSummary",
    "RiskScore",
    # Persistence models
    "ChangeSet",
    "SaveResult",
    "UpdatedRecord",
    "ErrorRecord",
]
