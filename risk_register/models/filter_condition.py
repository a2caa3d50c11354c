from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""FilterCondition model for the query builder.

A FilterCondition is one clause of an ad-hoc query: target column, comparison
operator, literal value (raw user text), declared data type and the logical
connector joining it to the *next* clause.

Conditions are mutable: the query builder updates fields in place while the
user edits a filter row. Evaluation never mutates them.
"""

__all__ = [
    "Connector",
    "DataType",
    "FilterCondition",
    "Operator",
]


class DataType(Enum):
    """Declared type governing how cell and value are coerced before comparison."""
    STRING = "String"
    NUMBER = "Number"
    DATE = "Date"
    BOOLEAN = "Boolean"


class Operator(Enum):
    """Comparison operators as presented to the user."""
    EQ = "="
    NE = "!="
    CONTAINS = "contains"
    STARTS_WITH = "starts with"
    ENDS_WITH = "ends with"
    GT = "greater than"
    LT = "less than"
    GE = "greater than or equal to"
    LE = "less than or equal to"


class Connector(Enum):
    """Logical join between a condition's match set and the next one's."""
    AND = "AND"
    OR = "OR"


@dataclass
class FilterCondition:
    """One user-specified predicate clause.

    Fields hold raw strings as entered in the builder so that unknown
    operators or data types can be carried through and fail safe at
    evaluation time instead of at construction time.
    """
    id: str  # opaque; only used to address the row in the builder
    column: str
    operator: str = ""
    value: str = ""
    data_type: str = DataType.STRING.value
    connector: str = Connector.AND.value  # join with the next condition; unused on the last

    @property
    def is_complete(self) -> bool:
        """True when column, operator and value are all filled in."""
        return bool(self.column) and bool(self.operator) and self.value is not None and self.value != ""
