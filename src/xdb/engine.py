"""
Statement Engine for XDB.

The engine owns every resident database and is the entry point for
statements. It coordinates between:
- Parser: turns statement text into a statement tree
- Execution Runner: applies row statements to a database
- Schema operations: CREATE/DROP TABLE and CREATE INDEX, handled here

Execution Flow:
    1. Look up the resident database
    2. Parse the statement (unsupported keywords fail here)
    3. Apply schema statements directly, delegate row statements
    4. Return a QueryResult

Design Principles:
    - Memory only: persistence is a separate step owned by the caller
    - Nothing partial: every check runs before the first mutation
"""

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from xdb.errors import (
    ConflictError,
    NotFoundError,
    SchemaError,
    StatementSyntaxError,
    StatementValidationError,
)
from xdb.runner import ExecutionRunner
from xdb.schema import Column, Database, Index, QueryResult, Table
from xdb.sql import (
    CreateIndexStatement,
    CreateTableStatement,
    DropTableStatement,
    Statement,
    parse_statement,
)
from xdb.values import Row

logger = logging.getLogger(__name__)

DATABASE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_database_name(name: str) -> str:
    """
    Check that a database name is safe to use as a file name.

    Raises:
        StatementValidationError: If the name has characters other than
            letters, digits, underscore and hyphen
    """
    if not DATABASE_NAME_RE.match(name or ""):
        raise StatementValidationError(
            message=f"Invalid database name: {name!r}",
            suggestion="Use only letters, digits, '_' and '-'",
        )
    return name


class StatementEngine:
    """
    In-memory registry of databases plus statement dispatch.

    Example:
        >>> engine = StatementEngine()
        >>> engine.create_database("app")
        >>> engine.execute_statement("app", "CREATE TABLE t (id INTEGER PRIMARY KEY)")
        >>> engine.execute_statement("app", "SELECT * FROM t").rows
        []
    """

    def __init__(self) -> None:
        self._databases: dict[str, Database] = {}

    # =========================================================================
    # Databases
    # =========================================================================

    def create_database(self, name: str) -> Database:
        validate_database_name(name)
        if name in self._databases:
            raise ConflictError(kind="database", name=name)
        database = Database(name=name)
        self._databases[name] = database
        logger.info("Created database %s", name)
        return database

    def delete_database(self, name: str) -> None:
        if name not in self._databases:
            raise NotFoundError(kind="database", name=name)
        del self._databases[name]
        logger.info("Deleted database %s", name)

    def get_database(self, name: str) -> Database:
        database = self._databases.get(name)
        if database is None:
            raise NotFoundError(kind="database", name=name)
        return database

    def database_exists(self, name: str) -> bool:
        return name in self._databases

    def list_databases(self) -> list[str]:
        return sorted(self._databases)

    def load(self, database: Database) -> None:
        """Make a database resident, replacing any copy with the same name."""
        self._databases[database.name] = database

    def unload(self, name: str) -> None:
        """Drop the resident copy of a database, if any."""
        self._databases.pop(name, None)

    def export(self, name: str) -> dict[str, Any]:
        """JSON-ready document `{name: database}` as stored on disk."""
        database = self.get_database(name)
        return {name: database.model_dump(mode="json", by_alias=True)}

    def serialized_size(self, name: str) -> int:
        """UTF-8 size in bytes of the exported document."""
        return len(json.dumps(self.export(name)).encode("utf-8"))

    # =========================================================================
    # Tables
    # =========================================================================

    def create_table(self, db_name: str, create_sql: str) -> QueryResult:
        """Create a table from CREATE TABLE text."""
        statement = parse_statement(create_sql)
        if not isinstance(statement, CreateTableStatement):
            raise StatementSyntaxError(
                message="Expected a CREATE TABLE statement",
                statement=create_sql,
            )
        return self._create_table(self.get_database(db_name), statement)

    def create_table_from_columns(
        self,
        db_name: str,
        table_name: str,
        columns: Iterable[Column | Mapping[str, Any]],
        if_not_exists: bool = False,
    ) -> QueryResult:
        """
        Create a table from structured column definitions.

        The derived primary key is every column flagged `primary_key`.
        """
        parsed = [c if isinstance(c, Column) else Column.model_validate(c) for c in columns]
        if not parsed:
            raise StatementValidationError(message="A table needs at least one column")
        names = [c.name for c in parsed]
        for name in names:
            if names.count(name) > 1:
                raise SchemaError(
                    message=f"Duplicate column name '{name}'",
                    database=db_name,
                    table=table_name,
                    column=name,
                )
        statement = CreateTableStatement(
            table=table_name,
            columns=tuple(parsed),
            primary_key=tuple(c.name for c in parsed if c.primary_key),
            if_not_exists=if_not_exists,
        )
        return self._create_table(self.get_database(db_name), statement)

    def _create_table(self, database: Database, statement: CreateTableStatement) -> QueryResult:
        if statement.table in database.tables:
            if statement.if_not_exists:
                return QueryResult(rows_affected=0)
            raise ConflictError(kind="table", name=statement.table)

        database.tables[statement.table] = Table(
            name=statement.table,
            columns=list(statement.columns),
            primary_key=list(statement.primary_key),
        )
        database.touch()
        logger.info("Created table %s.%s", database.name, statement.table)
        return QueryResult(rows_affected=0)

    def drop_table(self, db_name: str, table_name: str, if_exists: bool = False) -> QueryResult:
        database = self.get_database(db_name)
        if table_name not in database.tables:
            if if_exists:
                return QueryResult(rows_affected=0)
            raise NotFoundError(kind="table", name=table_name)
        del database.tables[table_name]
        database.touch()
        logger.info("Dropped table %s.%s", db_name, table_name)
        return QueryResult(rows_affected=0)

    def list_tables(self, db_name: str) -> list[str]:
        return list(self.get_database(db_name).tables)

    def get_table(self, db_name: str, table_name: str) -> Table:
        table = self.get_database(db_name).tables.get(table_name)
        if table is None:
            raise NotFoundError(kind="table", name=table_name)
        return table

    def get_table_schema(self, db_name: str, table_name: str) -> list[Column]:
        return list(self.get_table(db_name, table_name).columns)

    def get_table_rows(self, db_name: str, table_name: str) -> list[Row]:
        return [dict(row) for row in self.get_table(db_name, table_name).rows]

    def add_index(
        self,
        db_name: str,
        table_name: str,
        index_name: str,
        columns: Iterable[str],
        unique: bool = False,
        if_not_exists: bool = False,
    ) -> QueryResult:
        """Record an index descriptor. Indexes never change how rows are found."""
        database = self.get_database(db_name)
        table = self.get_table(db_name, table_name)
        columns = list(columns)
        for name in columns:
            if table.get_column(name) is None:
                raise SchemaError(database=db_name, table=table_name, column=name)

        for existing in (i for t in database.tables.values() for i in t.indexes):
            if existing.name == index_name:
                if if_not_exists:
                    return QueryResult(rows_affected=0)
                raise ConflictError(kind="index", name=index_name)

        table.indexes.append(
            Index(name=index_name, table_name=table_name, columns=columns, unique=unique)
        )
        database.touch()
        return QueryResult(rows_affected=0)

    # =========================================================================
    # Statements
    # =========================================================================

    def insert_row(self, db_name: str, table_name: str, values: Mapping[str, Any]) -> QueryResult:
        """Structured insert; same coercion and constraints as INSERT."""
        database = self.get_database(db_name)
        result = ExecutionRunner(database).insert_values(table_name, values)
        database.touch()
        return result

    def execute_statement(self, db_name: str, sql: str) -> QueryResult:
        """Parse and execute one statement against a resident database."""
        database = self.get_database(db_name)
        statement = parse_statement(sql)
        logger.debug("Executing on %s: %s", db_name, sql)
        return self.execute(database, statement)

    def execute(self, database: Database, statement: Statement) -> QueryResult:
        """Execute an already parsed statement."""
        if isinstance(statement, CreateTableStatement):
            return self._create_table(database, statement)
        if isinstance(statement, DropTableStatement):
            return self.drop_table(database.name, statement.table, if_exists=statement.if_exists)
        if isinstance(statement, CreateIndexStatement):
            return self.add_index(
                database.name,
                statement.table,
                statement.name,
                statement.columns,
                unique=statement.unique,
                if_not_exists=statement.if_not_exists,
            )

        result = ExecutionRunner(database).execute(statement)
        if result.rows is None:
            database.touch()
        return result
