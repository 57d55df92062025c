"""
Statement tree for the XDB dialect.

Every statement is a frozen dataclass; `Statement` is their union.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias

from xdb.schema import Column


class ComparisonOperator(str, Enum):
    """Operators allowed in a WHERE condition."""

    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    LIKE = "LIKE"
    IN = "IN"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"


@dataclass(frozen=True)
class Condition:
    """
    A single `column <op> value` test.

    For IN the value is a tuple of candidates; for IS [NOT] NULL it is None.
    """

    column: str
    operator: ComparisonOperator
    value: Any = None


@dataclass(frozen=True)
class WhereClause:
    """OR of AND-groups: a row matches if every condition of any branch holds."""

    branches: tuple[tuple[Condition, ...], ...]

    def columns(self) -> set[str]:
        return {c.column for branch in self.branches for c in branch}


@dataclass(frozen=True)
class OrderTerm:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class Assignment:
    column: str
    value: Any


@dataclass(frozen=True)
class SelectStatement:
    """`columns` is None for `*`."""

    table: str
    columns: tuple[str, ...] | None = None
    where: WhereClause | None = None
    order_by: tuple[OrderTerm, ...] = ()
    limit: int | None = None


@dataclass(frozen=True)
class InsertStatement:
    """`columns` is None when the statement lists no columns."""

    table: str
    columns: tuple[str, ...] | None
    values: tuple[Any, ...]


@dataclass(frozen=True)
class UpdateStatement:
    table: str
    assignments: tuple[Assignment, ...]
    where: WhereClause | None = None


@dataclass(frozen=True)
class DeleteStatement:
    table: str
    where: WhereClause | None = None


@dataclass(frozen=True)
class CreateTableStatement:
    """
    A CREATE TABLE statement.

    Attributes:
        table: Table name
        columns: Column definitions, primary key flags already applied
        primary_key: Derived primary key column names
        if_not_exists: Whether an existing table makes this a no-op
    """

    table: str
    columns: tuple[Column, ...]
    primary_key: tuple[str, ...] = ()
    if_not_exists: bool = False


@dataclass(frozen=True)
class CreateIndexStatement:
    name: str
    table: str
    columns: tuple[str, ...]
    unique: bool = False
    if_not_exists: bool = False


@dataclass(frozen=True)
class DropTableStatement:
    table: str
    if_exists: bool = False


Statement: TypeAlias = (
    SelectStatement
    | InsertStatement
    | UpdateStatement
    | DeleteStatement
    | CreateTableStatement
    | CreateIndexStatement
    | DropTableStatement
)

MUTATING_STATEMENTS = (
    InsertStatement,
    UpdateStatement,
    DeleteStatement,
    CreateTableStatement,
    CreateIndexStatement,
    DropTableStatement,
)


def is_mutating(statement: Statement) -> bool:
    """True for every statement that changes the database."""
    return isinstance(statement, MUTATING_STATEMENTS)
