"""
Execution Runner for XDB.

The runner applies SELECT, INSERT, UPDATE and DELETE to the tables of
one in-memory database. It owns the row-level semantics:
- WHERE evaluation (OR of AND-groups)
- ORDER BY, LIMIT and projection
- Coercion of incoming values to column types
- NOT NULL and PRIMARY KEY validation

Execution Flow (writes):
    1. Resolve the table and every referenced column
    2. Build the new or changed rows off to the side
    3. Validate constraints for all of them
    4. Only then mutate the table

Design Principles:
    - Fail before mutate: a rejected statement changes nothing
    - Reads return copies, never the stored row objects
"""

import functools
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from xdb.errors import (
    ConstraintViolationError,
    NotFoundError,
    SchemaError,
    StatementValidationError,
)
from xdb.schema import ColumnType, Database, QueryResult, Table
from xdb.sql.ast import (
    ComparisonOperator,
    Condition,
    DeleteStatement,
    InsertStatement,
    OrderTerm,
    SelectStatement,
    UpdateStatement,
    WhereClause,
)
from xdb.values import Row, compare_values, coerce_to_column, render_text, values_equal

logger = logging.getLogger(__name__)

RowStatement = SelectStatement | InsertStatement | UpdateStatement | DeleteStatement


# =============================================================================
# Predicates
# =============================================================================


def evaluate_condition(row: Mapping[str, Any], condition: Condition) -> bool:
    """Test one condition against a row."""
    left = row.get(condition.column)
    op = condition.operator
    right = condition.value

    if op == ComparisonOperator.EQ:
        return values_equal(left, right)
    if op == ComparisonOperator.NE:
        return not values_equal(left, right)
    if op == ComparisonOperator.IS_NULL:
        return left is None
    if op == ComparisonOperator.IS_NOT_NULL:
        return left is not None
    if op == ComparisonOperator.IN:
        return any(values_equal(left, candidate) for candidate in right)
    if op == ComparisonOperator.LIKE:
        if left is None or right is None:
            return False
        return render_text(right).replace("%", "") in render_text(left)

    order = compare_values(left, right)
    if order is None:
        return False
    if op == ComparisonOperator.GT:
        return order > 0
    if op == ComparisonOperator.LT:
        return order < 0
    if op == ComparisonOperator.GE:
        return order >= 0
    if op == ComparisonOperator.LE:
        return order <= 0
    return False


def evaluate_where(row: Mapping[str, Any], where: WhereClause | None) -> bool:
    """True if any AND-group holds entirely. A missing clause matches all rows."""
    if where is None:
        return True
    return any(
        all(evaluate_condition(row, condition) for condition in branch)
        for branch in where.branches
    )


def apply_order_by(rows: list[Row], terms: Iterable[OrderTerm]) -> list[Row]:
    """
    Stable multi-key sort.

    Nulls and incomparable pairs tie on a key and fall through to the next.
    """
    terms = list(terms)
    if not terms:
        return rows

    def compare(a: Row, b: Row) -> int:
        for term in terms:
            order = compare_values(a.get(term.column), b.get(term.column))
            if order:
                return -order if term.descending else order
        return 0

    return sorted(rows, key=functools.cmp_to_key(compare))


# =============================================================================
# Constraints
# =============================================================================


def check_not_null(table: Table, row: Mapping[str, Any]) -> None:
    """Reject null in NOT NULL and PRIMARY KEY columns."""
    for column in table.columns:
        if (column.not_null or column.primary_key) and row.get(column.name) is None:
            raise ConstraintViolationError(
                table=table.name,
                columns=[column.name],
                constraint="NOT NULL",
            )


def check_primary_key_uniqueness(
    table: Table,
    candidate: Mapping[str, Any],
    existing: Iterable[Mapping[str, Any]] | None = None,
    ignore: int | None = None,
) -> None:
    """
    Reject a row whose primary key matches another row.

    Args:
        table: Table whose primary key applies
        candidate: Row being inserted or the new state of an updated row
        existing: Rows to compare against (defaults to the table's rows)
        ignore: Position in `existing` to skip (the candidate's own slot)

    Raises:
        ConstraintViolationError: On a duplicate key
    """
    key_columns = [c.name for c in table.primary_key_columns()]
    if not key_columns:
        return

    rows = table.rows if existing is None else existing
    for position, row in enumerate(rows):
        if position == ignore:
            continue
        if all(values_equal(row.get(name), candidate.get(name)) for name in key_columns):
            raise ConstraintViolationError(table=table.name, columns=key_columns)


# =============================================================================
# Runner
# =============================================================================


class ExecutionRunner:
    """
    Runs row statements against one database.

    Example:
        >>> runner = ExecutionRunner(database)
        >>> result = runner.execute(parse_statement("SELECT * FROM users"))
        >>> result.rows
        [...]
    """

    def __init__(self, database: Database):
        self.database = database

    def execute(self, statement: RowStatement) -> QueryResult:
        """Dispatch a row statement by type."""
        if isinstance(statement, SelectStatement):
            return self.select(statement)
        if isinstance(statement, InsertStatement):
            return self.insert(statement)
        if isinstance(statement, UpdateStatement):
            return self.update(statement)
        if isinstance(statement, DeleteStatement):
            return self.delete(statement)
        raise StatementValidationError(
            message=f"Unsupported statement type: {type(statement).__name__}"
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_table(self, name: str) -> Table:
        table = self.database.tables.get(name)
        if table is None:
            raise NotFoundError(kind="table", name=name)
        return table

    def _require_columns(self, table: Table, names: Iterable[str]) -> None:
        known = set(table.column_names())
        for name in names:
            if name not in known:
                raise SchemaError(database=self.database.name, table=table.name, column=name)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def select(self, statement: SelectStatement) -> QueryResult:
        """Filter, order, limit, then project."""
        table = self.get_table(statement.table)
        if statement.where is not None:
            self._require_columns(table, statement.where.columns())
        self._require_columns(table, (term.column for term in statement.order_by))

        rows = [row for row in table.rows if evaluate_where(row, statement.where)]
        rows = apply_order_by(rows, statement.order_by)
        if statement.limit is not None:
            rows = rows[: statement.limit]

        if statement.columns is None:
            projected = [dict(row) for row in rows]
        else:
            projected = [
                {name: row[name] for name in statement.columns if name in row}
                for row in rows
            ]
        return QueryResult(rows=projected)

    def insert(self, statement: InsertStatement) -> QueryResult:
        table = self.get_table(statement.table)
        columns = (
            list(statement.columns) if statement.columns is not None else table.column_names()
        )
        if len(columns) != len(statement.values):
            raise StatementValidationError(
                message=(
                    f"Column count ({len(columns)}) does not match "
                    f"value count ({len(statement.values)})"
                )
            )
        if len(set(columns)) != len(columns):
            raise StatementValidationError(message="A column is listed more than once in INSERT")
        return self.insert_values(table.name, dict(zip(columns, statement.values, strict=True)))

    def insert_values(self, table_name: str, values: Mapping[str, Any]) -> QueryResult:
        """
        Insert one row given as a column-to-value mapping.

        Unlisted columns take their default. A single INTEGER primary key
        left null is assigned one more than the current maximum.
        """
        table = self.get_table(table_name)
        self._require_columns(table, values)

        row: Row = {}
        for column in table.columns:
            if column.name in values:
                row[column.name] = coerce_to_column(
                    values[column.name], column.type, column=column.name
                )
            else:
                row[column.name] = column.default

        insert_id = self._assign_generated_key(table, row)
        check_not_null(table, row)
        check_primary_key_uniqueness(table, row)

        table.rows.append(row)
        logger.debug("Inserted row into %s.%s", self.database.name, table.name)
        return QueryResult(rows_affected=1, insert_id=insert_id)

    def _assign_generated_key(self, table: Table, row: Row) -> int | None:
        key_columns = table.primary_key_columns()
        if len(key_columns) != 1 or key_columns[0].type != ColumnType.INTEGER:
            return None

        name = key_columns[0].name
        if row[name] is None:
            current = [
                r[name] for r in table.rows
                if isinstance(r.get(name), int) and not isinstance(r.get(name), bool)
            ]
            row[name] = max(current, default=0) + 1
        value = row[name]
        return value if isinstance(value, int) else None

    def update(self, statement: UpdateStatement) -> QueryResult:
        """Update every matching row, or none if any would break a constraint."""
        table = self.get_table(statement.table)
        self._require_columns(table, (a.column for a in statement.assignments))
        if statement.where is not None:
            self._require_columns(table, statement.where.columns())

        columns = {c.name: c for c in table.columns}
        changes: Row = {}
        for assignment in statement.assignments:
            column = columns[assignment.column]
            changes[column.name] = coerce_to_column(
                assignment.value, column.type, column=column.name
            )

        matched = [i for i, row in enumerate(table.rows) if evaluate_where(row, statement.where)]
        if not matched:
            return QueryResult(rows_affected=0)

        after = list(table.rows)
        for i in matched:
            after[i] = {**table.rows[i], **changes}

        key_changed = any(c.name in changes for c in table.primary_key_columns())
        for i in matched:
            check_not_null(table, after[i])
            if key_changed:
                check_primary_key_uniqueness(table, after[i], existing=after, ignore=i)

        for i in matched:
            table.rows[i].update(changes)
        return QueryResult(rows_affected=len(matched))

    def delete(self, statement: DeleteStatement) -> QueryResult:
        table = self.get_table(statement.table)
        if statement.where is not None:
            self._require_columns(table, statement.where.columns())

        before = len(table.rows)
        table.rows = [row for row in table.rows if not evaluate_where(row, statement.where)]
        return QueryResult(rows_affected=before - len(table.rows))
